# cms_publisher/application/publishing/orchestrator.py
"""
Entry points of the publish pipeline.

Per collection root: validate -> publish structured data -> cleanup -> report.
Each root runs in its own database transaction, so a failing root rolls back
on its own and never blocks the roots after it.
"""
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from cms_publisher.domain.publishing.exceptions import PublishError, ValidationError
from cms_publisher.domain.publishing.hashing import needs_publish
from cms_publisher.domain.publishing.results import (
    COLLECTION_KINDS,
    HIERARCHY_KINDS,
    ActionCounts,
    BatchPublishResult,
    HierarchyResult,
    PublishResult,
    SitePublishResult,
    TableStats,
)
from cms_publisher.models.base import local_time_now
from cms_publisher.repositories.entity_store import Stores
from cms_publisher.repositories.settings_store import (
    DRAFT_CSS,
    PUBLISHED_AT,
    PUBLISHED_CSS,
    get_setting,
    set_setting,
)
from cms_publisher.utils.audit import log_action
from cms_publisher.utils.transaction import transactional
from .cleanup import (
    cleanup_deleted_collection,
    cleanup_deleted_collection_content,
    cleanup_deleted_collections,
    cleanup_deleted_hierarchy,
)
from .hierarchy import publish_hierarchy
from .structured import find_items_needing_publish, publish_collection_content

# Result kind -> table name used in site statistics
HIERARCHY_TABLES = {"folders": "page_folders", "pages": "pages", "layers": "page_layers"}
COLLECTION_TABLES = {
    "collection": "collections",
    "fields": "collection_fields",
    "items": "collection_items",
    "values": "collection_item_values",
}


@dataclass
class PublishRequest:
    collection_id: str
    item_ids: Optional[List[str]] = None

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "PublishRequest":
        collection_id = data.get("collection_id")
        if not collection_id or not isinstance(collection_id, str):
            raise ValidationError("collection_id is required")

        item_ids = data.get("item_ids")
        if item_ids is not None and not isinstance(item_ids, list):
            raise ValidationError("item_ids must be a list")
        return cls(collection_id=collection_id, item_ids=item_ids or None)


def _elapsed_ms(started: float) -> int:
    return int(round((time.perf_counter() - started) * 1000))


def _reset_counts(result, kinds) -> None:
    # A rolled back run wrote nothing
    result.counts = {kind: ActionCounts() for kind in kinds}


def _validate_items(stores, collection_id: str, item_ids: List[str]) -> None:
    found = {item.id: item for item in stores.items.select_by_keys(item_ids, False)}

    missing = [item_id for item_id in item_ids if item_id not in found]
    if missing:
        raise ValidationError(f"Items not found: {', '.join(missing)}")

    foreign = [item_id for item_id in item_ids if found[item_id].collection_id != collection_id]
    if foreign:
        raise ValidationError(
            f"Items {', '.join(foreign)} do not belong to collection {collection_id}"
        )


# -------------------------------------------------
# Collections domain
# -------------------------------------------------

def publish_root(
    collection_id: str,
    selected_item_ids: Optional[List[str]] = None,
    actor_id: Optional[str] = None,
    stores: Optional[Stores] = None,
) -> PublishResult:
    """
    Publishes one collection and the items selected under it.

    Never raises for pipeline failures: they land in `result.errors` and the
    root's writes are rolled back.
    """
    stores = stores or Stores()
    result = PublishResult(collection_id=collection_id)
    started = time.perf_counter()

    try:
        with transactional():
            # 1️⃣ Lock the draft root for the duration of the run
            draft = stores.collections.get(
                collection_id, False, include_deleted=True, for_update=True
            )
            if draft is None:
                raise ValidationError(f"Collection {collection_id} not found")

            if draft.deleted_at is not None:
                # 2️⃣ Deleted root: nothing to publish, remove both states
                cleanup_deleted_collection(stores, collection_id)
                log_action(
                    action="collection.delete",
                    entity_type="collection",
                    entity_id=collection_id,
                    actor_id=actor_id,
                )
            else:
                # 2️⃣ Validate explicit selection
                if selected_item_ids:
                    _validate_items(stores, collection_id, selected_item_ids)

                # 3️⃣ Publish, then remove what was deleted in draft
                publish_collection_content(stores, draft, result, selected_item_ids)
                cleanup_deleted_collection_content(stores, collection_id, result)

                # 4️⃣ Audit
                log_action(
                    action="collection.publish",
                    entity_type="collection",
                    entity_id=collection_id,
                    payload={
                        "items": list(selected_item_ids or []),
                        "totals": result.totals.to_dict(),
                    },
                    actor_id=actor_id,
                )
        result.success = True

    except PublishError as exc:
        current_app.logger.warning("[publish] collection %s failed: %s", collection_id, exc)
        result.errors.append(str(exc))
        _reset_counts(result, COLLECTION_KINDS)

    except SQLAlchemyError as exc:
        current_app.logger.error("[publish] collection %s failed", collection_id, exc_info=exc)
        result.errors.append(f"Database error: {exc}")
        _reset_counts(result, COLLECTION_KINDS)

    result.durations_ms["total"] = _elapsed_ms(started)
    current_app.logger.info(
        "[publish] collection %s finished: success=%s totals=%s",
        collection_id, result.success, result.totals.to_dict(),
    )
    return result


def publish_roots(
    requests: Iterable[Union[PublishRequest, Mapping[str, Any]]],
    actor_id: Optional[str] = None,
    stores: Optional[Stores] = None,
) -> BatchPublishResult:
    """Sequentially publishes several roots. One failure never stops the rest."""
    stores = stores or Stores()
    batch = BatchPublishResult()

    for request in requests:
        if not isinstance(request, PublishRequest):
            try:
                request = PublishRequest.from_dict(request)
            except PublishError as exc:
                current_app.logger.warning("[publish] rejected request %r: %s", request, exc)
                batch.results.append(
                    PublishResult(collection_id=str(request.get("collection_id")), errors=[str(exc)])
                )
                continue
        try:
            result = publish_root(request.collection_id, request.item_ids, actor_id, stores)
        except Exception as exc:
            current_app.logger.exception("[publish] unexpected failure for %s", request.collection_id)
            result = PublishResult(collection_id=request.collection_id, errors=[str(exc)])
        batch.results.append(result)

    current_app.logger.info("[publish] batch finished: %s", batch.summary)
    return batch


def publish_items(
    item_ids: Iterable[str],
    actor_id: Optional[str] = None,
    stores: Optional[Stores] = None,
) -> BatchPublishResult:
    """
    Publishes explicitly selected items, grouped by the collection they
    belong to. Unknown ids are logged and skipped.
    """
    stores = stores or Stores()
    item_ids = list(dict.fromkeys(item_ids))
    found = {item.id: item for item in stores.items.select_by_keys(item_ids, False)}

    grouped: Dict[str, List[str]] = {}
    for item_id in item_ids:
        item = found.get(item_id)
        if item is None:
            current_app.logger.warning("[publish] item %s not found, skipped", item_id)
            continue
        grouped.setdefault(item.collection_id, []).append(item_id)

    return publish_roots(
        [PublishRequest(collection_id, ids) for collection_id, ids in grouped.items()],
        actor_id=actor_id,
        stores=stores,
    )


def is_publish_needed(collection_id: str, stores: Optional[Stores] = None) -> bool:
    """True when publishing the collection would change the published side."""
    stores = stores or Stores()

    draft = stores.collections.get(collection_id, False, include_deleted=True)
    if draft is None:
        return False
    if draft.deleted_at is not None:
        return True

    if needs_publish(draft, stores.collections.get(collection_id, True)):
        return True

    fields = stores.fields.select_active(False, collection_id=collection_id)
    published_fields = {f.id: f for f in stores.fields.select_by_keys([f.id for f in fields], True)}
    if any(needs_publish(f, published_fields.get(f.id)) for f in fields):
        return True

    # Pending soft deletes change the published side too
    if stores.fields.select_deleted(collection_id=collection_id):
        return True
    if stores.items.select_deleted(collection_id=collection_id):
        return True

    return bool(find_items_needing_publish(stores, collection_id))


def get_publishable_count(collection_id: str, stores: Optional[Stores] = None) -> int:
    """Number of items an unscoped publish of this collection would write."""
    stores = stores or Stores()
    return len(find_items_needing_publish(stores, collection_id))


def get_publishable_counts(
    collection_ids: Iterable[str],
    stores: Optional[Stores] = None,
) -> Dict[str, int]:
    stores = stores or Stores()
    counts: Dict[str, int] = {}
    for collection_id in dict.fromkeys(collection_ids):
        try:
            counts[collection_id] = get_publishable_count(collection_id, stores)
        except PublishError as exc:
            current_app.logger.error(
                "[publish] counting %s failed: %s", collection_id, exc, exc_info=exc
            )
            counts[collection_id] = 0
    return counts


# -------------------------------------------------
# Pages domain
# -------------------------------------------------

def publish_pages(
    folder_ids: Optional[Iterable[str]] = None,
    page_ids: Optional[Iterable[str]] = None,
    actor_id: Optional[str] = None,
    stores: Optional[Stores] = None,
) -> HierarchyResult:
    """
    Publishes folders, pages and page layers. Soft-deleted entities are only
    cleaned up by an unscoped run.
    """
    stores = stores or Stores()
    result = HierarchyResult()
    folder_ids = list(folder_ids or [])
    page_ids = list(page_ids or [])
    selective = bool(folder_ids or page_ids)

    try:
        with transactional():
            publish_hierarchy(stores, result, folder_ids, page_ids)
            if not selective:
                cleanup_deleted_hierarchy(stores, result)

            log_action(
                action="pages.publish",
                entity_type="page",
                entity_id=None,
                payload={
                    "folder_ids": folder_ids,
                    "page_ids": page_ids,
                    "totals": result.totals.to_dict(),
                },
                actor_id=actor_id,
            )
        result.success = True

    except PublishError as exc:
        current_app.logger.warning("[publish] pages failed: %s", exc)
        result.errors.append(str(exc))
        _reset_counts(result, HIERARCHY_KINDS)

    except SQLAlchemyError as exc:
        current_app.logger.error("[publish] pages failed", exc_info=exc)
        result.errors.append(f"Database error: {exc}")
        _reset_counts(result, HIERARCHY_KINDS)

    current_app.logger.info(
        "[publish] pages finished: success=%s totals=%s",
        result.success, result.totals.to_dict(),
    )
    return result


# -------------------------------------------------
# Whole site
# -------------------------------------------------

def _table_stats(counts: ActionCounts, duration_ms: int) -> TableStats:
    return TableStats(
        added=counts.created,
        updated=counts.updated,
        deleted=counts.deleted,
        duration_ms=duration_ms,
    )


def _collect_stats(site: SitePublishResult, removed_collections: int) -> None:
    hierarchy = site.hierarchy
    for kind, table in HIERARCHY_TABLES.items():
        site.stats[table] = _table_stats(hierarchy.counts[kind], hierarchy.durations_ms.get(kind, 0))

    for kind, table in COLLECTION_TABLES.items():
        stats = TableStats()
        for result in site.collections.results:
            counts = result.counts[kind]
            stats.added += counts.created
            stats.updated += counts.updated
            stats.deleted += counts.deleted
            stats.duration_ms += result.durations_ms.get(kind, 0)
        site.stats[table] = stats

    site.stats["collections"].deleted += removed_collections


def publish_site(actor_id: Optional[str] = None, stores: Optional[Stores] = None) -> SitePublishResult:
    """
    Full publish: pages domain, every draft collection, sweep of deleted
    collections, then site settings (CSS and `published_at`).
    """
    stores = stores or Stores()
    site = SitePublishResult()
    started = time.perf_counter()

    # 1️⃣ Pages domain
    site.hierarchy = publish_pages(actor_id=actor_id, stores=stores)

    # 2️⃣ Collections domain
    try:
        collection_ids = [c.id for c in stores.collections.select_active(False)]
    except PublishError as exc:
        current_app.logger.error("[publish] listing collections failed: %s", exc, exc_info=exc)
        site.errors.append(str(exc))
        collection_ids = []
    site.collections = publish_roots(
        [PublishRequest(collection_id) for collection_id in collection_ids],
        actor_id=actor_id,
        stores=stores,
    )

    # 3️⃣ Collections deleted in draft
    removed: List[str] = []
    try:
        with transactional():
            removed, failures = cleanup_deleted_collections(stores)
    except PublishError as exc:
        current_app.logger.error("[publish] deleted collections sweep failed: %s", exc, exc_info=exc)
        site.errors.append(str(exc))
    else:
        for message in failures:
            current_app.logger.warning("[publish] %s", message)
        site.cleanup_failures.extend(failures)

    # 4️⃣ Site settings, only once everything else went live
    if site.success:
        try:
            with transactional():
                draft_css = get_setting(DRAFT_CSS)
                if draft_css is not None:
                    set_setting(PUBLISHED_CSS, draft_css)
                    site.css_published = True

                site.published_at = local_time_now().isoformat()
                set_setting(PUBLISHED_AT, site.published_at)
        except PublishError as exc:
            current_app.logger.error("[publish] settings promotion failed: %s", exc, exc_info=exc)
            site.css_published = False
            site.published_at = None
            site.errors.append(str(exc))

    _collect_stats(site, len(removed))
    site.total_duration_ms = _elapsed_ms(started)

    with transactional():
        log_action(
            action="site.publish",
            entity_type="site",
            entity_id=None,
            payload={"success": site.success, "total_duration_ms": site.total_duration_ms},
            actor_id=actor_id,
        )

    current_app.logger.info(
        "[publish] site finished in %dms: success=%s", site.total_duration_ms, site.success
    )
    return site
