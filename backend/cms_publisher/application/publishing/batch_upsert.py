# cms_publisher/application/publishing/batch_upsert.py
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from flask import current_app

from cms_publisher.domain.publishing.hashing import needs_publish
from cms_publisher.domain.publishing.identity import IdMap, IdentityStrategy
from cms_publisher.domain.publishing.results import ActionCounts


@dataclass
class UpsertPlan:
    """Per-entity create / update / skip decisions for one kind."""

    kind: str
    creates: List[Tuple[Any, Dict[str, Any]]] = field(default_factory=list)
    updates: List[Tuple[Any, Any, Dict[str, Any]]] = field(default_factory=list)
    unchanged: List[Tuple[Any, Any]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.creates) + len(self.updates) + len(self.unchanged)


def plan_upserts(
    kind: str,
    strategy: IdentityStrategy,
    drafts: Iterable[Any],
    twins: Mapping[str, Any],
    columns: Sequence[str],
    remaps: Optional[Mapping[str, IdMap]] = None,
    compare_fields: Optional[Sequence[str]] = None,
    force: bool = False,
) -> UpsertPlan:
    """
    SKIP when the change detector says nothing changed, CREATE when there is
    no published twin, UPDATE otherwise. `force` bypasses the detector for
    rows whose owner already decided they must be rewritten.
    """
    plan = UpsertPlan(kind=kind)

    for draft in drafts:
        existing = twins.get(draft.id)
        if not force and not needs_publish(draft, existing, compare_fields):
            plan.unchanged.append((draft, existing))
            continue

        payload = strategy.build_published_payload(draft, existing, columns, remaps)
        if existing is None:
            plan.creates.append((draft, payload))
        else:
            plan.updates.append((draft, existing, payload))

    current_app.logger.debug(
        "[publish] %s plan: %d create, %d update, %d unchanged",
        kind, len(plan.creates), len(plan.updates), len(plan.unchanged),
    )
    return plan


def execute_plan(
    strategy: IdentityStrategy,
    plan: UpsertPlan,
    id_map: Optional[IdMap] = None,
) -> ActionCounts:
    """
    Writes a plan with the fewest statements the strategy allows and records
    every draft -> published id into `id_map` for the next level.
    """
    created = strategy.write_creates([payload for _, payload in plan.creates])
    updated = strategy.write_updates([(existing, payload) for _, existing, payload in plan.updates])

    if id_map is not None:
        for draft, payload in plan.creates:
            id_map.record(draft.id, payload["id"])
        for draft, existing, _ in plan.updates:
            id_map.record(draft.id, existing.id)
        for draft, existing in plan.unchanged:
            if existing is not None:
                id_map.record(draft.id, existing.id)

    counts = ActionCounts(created=created, updated=updated, unchanged=len(plan.unchanged))
    if created or updated:
        current_app.logger.info(
            "[publish] %s: %d created, %d updated, %d unchanged",
            plan.kind, counts.created, counts.updated, counts.unchanged,
        )
    return counts
