# cms_publisher/application/publishing/cleanup.py
"""
Hard-deletes soft-deleted drafts together with their published twins.

Children go before parents. Every entity gets its own savepoint, so one
failing delete is logged and skipped while its siblings carry on.
"""
from typing import Callable, Iterable, List, Tuple

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from cms_publisher.domain.publishing.exceptions import CleanupError, PublishError
from cms_publisher.domain.publishing.results import ActionCounts
from cms_publisher.utils.transaction import savepoint


def _cleanup_each(
    entity_type: str,
    rows: Iterable,
    remove: Callable,
    counts: ActionCounts,
    failures: List[str],
) -> None:
    for row in rows:
        try:
            with savepoint():
                remove(row)
        except (PublishError, SQLAlchemyError) as exc:
            error = CleanupError(
                f"cleanup of {entity_type} {row.id} failed: {exc}",
                entity_type=entity_type,
                entity_id=row.id,
            )
            current_app.logger.error("[cleanup] %s", error, exc_info=exc)
            failures.append(str(error))
            continue
        counts.deleted += 1


def _twin_row_remover(store):
    def remove(draft):
        twin = store.get(draft.link_key, True, key="link_key", include_deleted=True)
        if twin is not None:
            store.delete_ids([twin.id], published=True)
        store.delete_ids([draft.id], published=False)
    return remove


def _composite_remover(store):
    def remove(draft):
        store.delete_ids([draft.id], published=True)
        store.delete_ids([draft.id], published=False)
    return remove


# -------------------------------------------------
# Pages domain
# -------------------------------------------------

def cleanup_deleted_hierarchy(stores, result) -> None:
    """Page layers, then pages, then folders."""
    for kind, store in (
        ("layers", stores.layers),
        ("pages", stores.pages),
        ("folders", stores.folders),
    ):
        deleted = store.select_deleted()
        if not deleted:
            continue
        current_app.logger.info("[cleanup] %d soft-deleted %s", len(deleted), kind)
        _cleanup_each(
            kind,
            deleted,
            _twin_row_remover(store),
            result.counts[kind],
            result.cleanup_failures,
        )


# -------------------------------------------------
# Collections domain
# -------------------------------------------------

def cleanup_deleted_collection_content(stores, collection_id: str, result) -> None:
    """Values, then items, then fields of one live collection."""
    live_items = stores.items.select_active(False, collection_id=collection_id)
    deleted_items = stores.items.select_deleted(collection_id=collection_id)
    item_ids = [i.id for i in live_items] + [i.id for i in deleted_items]

    deleted_values = stores.values.select_deleted_by_keys(item_ids, key="item_id")
    deleted_fields = stores.fields.select_deleted(collection_id=collection_id)

    for kind, store, rows in (
        ("values", stores.values, deleted_values),
        ("items", stores.items, deleted_items),
        ("fields", stores.fields, deleted_fields),
    ):
        if not rows:
            continue
        current_app.logger.info(
            "[cleanup] collection %s: %d soft-deleted %s", collection_id, len(rows), kind
        )
        _cleanup_each(
            kind,
            rows,
            _composite_remover(store),
            result.counts[kind],
            result.cleanup_failures,
        )


def cleanup_deleted_collection(stores, collection_id: str) -> None:
    """
    Removes both states of a collection root. Composite foreign keys cascade
    to fields, items and values on each side.
    """
    try:
        with savepoint():
            stores.collections.delete_ids([collection_id], published=True)
            stores.collections.delete_ids([collection_id], published=False)
    except (PublishError, SQLAlchemyError) as exc:
        raise CleanupError(
            f"cleanup of collection {collection_id} failed: {exc}",
            entity_type="collection",
            entity_id=collection_id,
        ) from exc

    current_app.logger.info("[cleanup] collection %s removed in both states", collection_id)


def cleanup_deleted_collections(stores) -> Tuple[List[str], List[str]]:
    """
    Sweeps every soft-deleted draft collection.
    Returns (removed ids, failure messages).
    """
    removed: List[str] = []
    failures: List[str] = []

    for collection in stores.collections.select_deleted():
        try:
            cleanup_deleted_collection(stores, collection.id)
        except CleanupError as exc:
            current_app.logger.error("[cleanup] %s", exc, exc_info=exc)
            failures.append(str(exc))
            continue
        removed.append(collection.id)

    return removed, failures
