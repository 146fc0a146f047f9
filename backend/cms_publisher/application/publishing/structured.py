# cms_publisher/application/publishing/structured.py
"""
Collection -> fields -> items -> item values.

Every kind here shares ids between draft and published rows, so writes are
upserts on (id, is_published).

- Collection metadata and fields are always published in full (hash-gated).
- Items are published selectively: an explicit list, or every item whose
  metadata or value set differs from its published twin.
- Values are never selected on their own; they follow their item.
"""
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Set

from flask import current_app

from cms_publisher.domain.publishing.hashing import needs_publish, values_differ
from cms_publisher.domain.publishing.identity import CompositeKeyStrategy
from cms_publisher.domain.publishing.results import ActionCounts, PublishResult
from .batch_upsert import plan_upserts, execute_plan

COLLECTION_COLUMNS = ("name", "sorting", "order", "content_hash")
FIELD_COLUMNS = (
    "collection_id",
    "name",
    "key",
    "type",
    "default",
    "fillable",
    "order",
    "hidden",
    "is_computed",
    "data",
    "content_hash",
)
ITEM_COLUMNS = ("collection_id", "manual_order", "is_publishable")
ITEM_COMPARE_FIELDS = ("manual_order", "is_publishable")
VALUE_COLUMNS = ("item_id", "field_id", "value")


def _elapsed_ms(started: float) -> int:
    return int(round((time.perf_counter() - started) * 1000))


@dataclass
class ItemState:
    """Draft and published items of one collection with their value sets."""

    drafts: Dict[str, Any] = field(default_factory=dict)
    published: Dict[str, Any] = field(default_factory=dict)
    draft_values: Dict[str, List[Any]] = field(default_factory=lambda: defaultdict(list))
    published_values: Dict[str, List[Any]] = field(default_factory=lambda: defaultdict(list))

    def value_map(self, item_id: str, published: bool) -> Dict[str, Any]:
        rows = self.published_values if published else self.draft_values
        return {row.field_id: row.value for row in rows.get(item_id, [])}

    def needs_publish(self, item_id: str) -> bool:
        draft = self.drafts[item_id]
        twin = self.published.get(item_id)
        if twin is None:
            return True
        if needs_publish(draft, twin, ITEM_COMPARE_FIELDS):
            return True
        return values_differ(self.value_map(item_id, False), self.value_map(item_id, True))


def load_item_state(stores, collection_id: str, item_ids: Optional[Iterable[str]] = None) -> ItemState:
    state = ItemState()

    active_field_ids: Set[str] = {
        f.id for f in stores.fields.select_active(False, collection_id=collection_id)
    }

    if item_ids is None:
        drafts = stores.items.select_active(False, collection_id=collection_id)
    else:
        drafts = [
            item for item in stores.items.select_by_keys(list(item_ids), False)
            if item.collection_id == collection_id
        ]
    state.drafts = {item.id: item for item in drafts}
    if not state.drafts:
        return state

    ids = list(state.drafts)
    state.published = {item.id: item for item in stores.items.select_by_keys(ids, True)}

    # Values of soft-deleted fields are left for cleanup
    for row in stores.values.select_by_keys(ids, False, key="item_id"):
        if row.field_id in active_field_ids:
            state.draft_values[row.item_id].append(row)
    for row in stores.values.select_by_keys(ids, True, key="item_id"):
        state.published_values[row.item_id].append(row)

    return state


def _changed_items(state: ItemState) -> List[str]:
    return [
        item_id
        for item_id, draft in state.drafts.items()
        if draft.is_publishable and state.needs_publish(item_id)
    ]


def find_withdrawn_items(state: ItemState) -> List[str]:
    """Items switched to `is_publishable = False` that are still live."""
    return [
        item_id
        for item_id, draft in state.drafts.items()
        if not draft.is_publishable and item_id in state.published
    ]


def find_items_needing_publish(stores, collection_id: str, state: Optional[ItemState] = None) -> List[str]:
    """
    Ids of draft items that would change the published side: publishable
    items that differ from their twin, and withdrawn items whose published
    twin has to go.
    """
    if state is None:
        state = load_item_state(stores, collection_id)
    return _changed_items(state) + find_withdrawn_items(state)


def publish_collection_metadata(stores, draft_collection) -> ActionCounts:
    strategy = CompositeKeyStrategy(stores.collections)
    twin = stores.collections.get(draft_collection.id, True)
    plan = plan_upserts(
        "collections",
        strategy,
        [draft_collection],
        {draft_collection.id: twin},
        COLLECTION_COLUMNS,
    )
    return execute_plan(strategy, plan)


def publish_fields(stores, collection_id: str) -> ActionCounts:
    """All fields, every time. Unchanged ones are skipped by hash."""
    strategy = CompositeKeyStrategy(stores.fields)
    drafts = stores.fields.select_active(False, collection_id=collection_id)
    published = stores.fields.select_by_keys([f.id for f in drafts], True)
    twins = strategy.resolve_twins(drafts, published)
    plan = plan_upserts("collection_fields", strategy, drafts, twins, FIELD_COLUMNS)
    return execute_plan(strategy, plan)


def publish_items(stores, state: ItemState, item_ids: List[str], result: PublishResult) -> None:
    """
    Publishes the given items, then their whole value sets. Published values
    whose draft row is gone are removed.
    """
    item_strategy = CompositeKeyStrategy(stores.items)
    value_strategy = CompositeKeyStrategy(stores.values)

    drafts = [state.drafts[item_id] for item_id in item_ids]
    plan = plan_upserts(
        "collection_items",
        item_strategy,
        drafts,
        state.published,
        ITEM_COLUMNS,
        compare_fields=ITEM_COMPARE_FIELDS,
    )
    result.counts["items"].add(execute_plan(item_strategy, plan))

    started = time.perf_counter()
    draft_values: List[Any] = []
    value_twins: Dict[str, Any] = {}
    stale_ids: List[str] = []
    for item_id in item_ids:
        item_values = state.draft_values.get(item_id, [])
        draft_values.extend(item_values)
        live_ids = {row.id for row in item_values}
        for row in state.published_values.get(item_id, []):
            if row.id in live_ids:
                value_twins[row.id] = row
            else:
                stale_ids.append(row.id)

    value_plan = plan_upserts(
        "collection_item_values",
        value_strategy,
        draft_values,
        value_twins,
        VALUE_COLUMNS,
        compare_fields=VALUE_COLUMNS,
    )
    counts = execute_plan(value_strategy, value_plan)
    if stale_ids:
        counts.deleted += stores.values.delete_ids(stale_ids, published=True)
    result.counts["values"].add(counts)
    result.durations_ms["values"] = _elapsed_ms(started)


def withdraw_items(stores, state: ItemState, item_ids: List[str], result: PublishResult) -> None:
    """Hard-deletes the published twins of withdrawn items with their values."""
    value_ids = [row.id for item_id in item_ids for row in state.published_values.get(item_id, [])]
    result.counts["values"].deleted += stores.values.delete_ids(value_ids, published=True)
    result.counts["items"].deleted += stores.items.delete_ids(item_ids, published=True)


def _count_untouched(state: ItemState, item_ids: Iterable[str], result: PublishResult) -> None:
    for item_id in item_ids:
        result.counts["items"].unchanged += 1
        result.counts["values"].unchanged += len(state.draft_values.get(item_id, []))


def publish_collection_content(
    stores,
    draft_collection,
    result: PublishResult,
    selected_item_ids: Optional[List[str]] = None,
) -> PublishResult:
    collection_id = draft_collection.id

    started = time.perf_counter()
    result.counts["collection"].add(publish_collection_metadata(stores, draft_collection))
    result.durations_ms["collection"] = _elapsed_ms(started)

    started = time.perf_counter()
    result.counts["fields"].add(publish_fields(stores, collection_id))
    result.durations_ms["fields"] = _elapsed_ms(started)

    started = time.perf_counter()
    if selected_item_ids:
        state = load_item_state(stores, collection_id, selected_item_ids)
        to_publish = []
        withdrawn = []
        for item_id in dict.fromkeys(selected_item_ids):
            draft = state.drafts.get(item_id)
            if draft is None:
                current_app.logger.warning("[publish] item %s not found in %s, skipped", item_id, collection_id)
                continue
            if not draft.is_publishable:
                if item_id in state.published:
                    withdrawn.append(item_id)
                else:
                    current_app.logger.debug("[publish] item %s is not publishable, skipped", item_id)
                continue
            to_publish.append(item_id)
        untouched: List[str] = []
    else:
        state = load_item_state(stores, collection_id)
        to_publish = _changed_items(state)
        withdrawn = find_withdrawn_items(state)
        pending = set(to_publish) | set(withdrawn)
        untouched = [item_id for item_id in state.drafts if item_id not in pending]

    if to_publish:
        publish_items(stores, state, to_publish, result)
    if withdrawn:
        withdraw_items(stores, state, withdrawn, result)
    _count_untouched(state, untouched, result)
    result.durations_ms["items"] = max(_elapsed_ms(started) - result.durations_ms.get("values", 0), 0)

    current_app.logger.info(
        "[publish] collection %s: %d items published, %d withdrawn, %d unchanged",
        collection_id, len(to_publish), len(withdrawn), len(untouched),
    )
    return result
