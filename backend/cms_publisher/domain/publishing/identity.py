"""
Identity strategies: how a draft row finds its published twin.

- CompositeKeyStrategy: same `id`, `(id, is_published)` is the key
  (collections, fields, items, values)
- TwinRowStrategy: different ids, correlated by `link_key`
  (page folders, pages, page layers)

The dependency-ordered publisher only talks to the strategy interface, so it
never needs to know which of the two a kind uses.
"""
import uuid
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple


class IdMap:
    """
    draft id -> published id, built level by level during one publish run.
    Passed explicitly into the next level's payload builder.
    """

    def __init__(self, initial: Optional[Mapping[str, str]] = None, strict: bool = False):
        self._ids: Dict[str, str] = dict(initial or {})
        # Strict maps never hand back a draft id: unknown parents become None
        self.strict = strict

    def record(self, draft_id: str, published_id: str) -> None:
        self._ids[draft_id] = published_id

    def remap(self, draft_id: Optional[str]) -> Optional[str]:
        # Falling back to the original id covers parents that share ids
        if draft_id is None:
            return None
        return self._ids.get(draft_id, None if self.strict else draft_id)

    def __contains__(self, draft_id) -> bool:
        return draft_id in self._ids

    def __len__(self) -> int:
        return len(self._ids)

    def items(self):
        return self._ids.items()

    def as_dict(self) -> Dict[str, str]:
        return dict(self._ids)


class IdentityStrategy:
    name = "abstract"
    conflict_target: Tuple[str, ...] = ()

    def __init__(self, store):
        self.store = store

    def twin_key(self, row) -> str:
        raise NotImplementedError

    def resolve_twins(self, drafts: Iterable[Any], published: Iterable[Any]) -> Dict[str, Any]:
        """
        draft id -> published twin (None when the draft was never published).
        """
        by_key = {self.twin_key(row): row for row in published}
        return {draft.id: by_key.get(self.twin_key(draft)) for draft in drafts}

    def published_identity(self, draft, existing) -> Dict[str, Any]:
        raise NotImplementedError

    def build_published_payload(
        self,
        draft,
        existing,
        columns: Sequence[str],
        remaps: Optional[Mapping[str, IdMap]] = None,
    ) -> Dict[str, Any]:
        payload = {name: getattr(draft, name) for name in columns}
        for column, id_map in (remaps or {}).items():
            payload[column] = id_map.remap(getattr(draft, column))
        payload.update(self.published_identity(draft, existing))
        return payload

    def write_creates(self, payloads: List[Dict[str, Any]]) -> int:
        raise NotImplementedError

    def write_updates(self, updates: List[Tuple[Any, Dict[str, Any]]]) -> int:
        raise NotImplementedError


class CompositeKeyStrategy(IdentityStrategy):
    name = "composite_key"
    conflict_target = ("id", "is_published")

    def twin_key(self, row) -> str:
        return row.id

    def published_identity(self, draft, existing) -> Dict[str, Any]:
        return {"id": draft.id, "is_published": True}

    def write_creates(self, payloads):
        return self.store.insert(payloads)

    def write_updates(self, updates):
        if not updates:
            return 0
        # Shared ids give a real conflict target: one statement per batch
        return self.store.upsert(
            [payload for _, payload in updates],
            conflict_target=self.conflict_target,
        )


class TwinRowStrategy(IdentityStrategy):
    name = "twin_row"

    def twin_key(self, row) -> str:
        return row.link_key

    def published_identity(self, draft, existing) -> Dict[str, Any]:
        return {
            "id": existing.id if existing is not None else str(uuid.uuid4()),
            "link_key": draft.link_key,
            "is_published": True,
        }

    def write_creates(self, payloads):
        return self.store.insert(payloads)

    def write_updates(self, updates):
        # No shared conflict key between twins: one UPDATE per changed row
        count = 0
        for existing, payload in updates:
            values = {k: v for k, v in payload.items() if k != "id"}
            count += self.store.update(existing.id, values)
        return count
