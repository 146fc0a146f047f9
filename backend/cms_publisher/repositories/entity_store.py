# cms_publisher/repositories/entity_store.py
"""
Relational store used by the publish pipeline, one instance per model.

Reads always filter soft-deleted rows unless asked otherwise. Writes are
issued as Core statements so draft-only mapper hooks (content hashing) never
fire for published rows.
"""
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Iterator, List, Optional, Sequence

from flask import current_app
from sqlalchemy import delete, insert, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import SQLAlchemyError

from cms_publisher.extensions import db
from cms_publisher.models.base import local_time_now
from cms_publisher.domain.publishing.exceptions import StoreError

DEFAULT_BATCH_SIZE = 500

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def chunked(rows: Sequence[Any], size: int) -> Iterator[Sequence[Any]]:
    for start in range(0, len(rows), size):
        yield rows[start:start + size]


class EntityStore:
    def __init__(self, model):
        self.model = model
        self.table = model.__table__

    # -------------------------------------------------
    # Helpers
    # -------------------------------------------------

    @property
    def batch_size(self) -> int:
        try:
            return int(current_app.config.get("PUBLISH_BATCH_SIZE", DEFAULT_BATCH_SIZE))
        except RuntimeError:
            # Outside an app context (scripts)
            return DEFAULT_BATCH_SIZE

    @contextmanager
    def _guard(self, operation: str):
        try:
            yield
        except SQLAlchemyError as exc:
            raise StoreError(
                f"{operation} on {self.table.name} failed: {exc}",
                operation=operation,
                table=self.table.name,
            ) from exc

    def _where(self, filters: Dict[str, Any]) -> List[Any]:
        clauses = []
        for name, value in filters.items():
            column = getattr(self.model, name)
            if isinstance(value, (list, tuple, set, frozenset)):
                clauses.append(column.in_(list(value)))
            elif value is None:
                clauses.append(column.is_(None))
            else:
                clauses.append(column == value)
        return clauses

    def _scalars(self, stmt) -> List[Any]:
        # Core writes bypass the identity map; never hand back stale rows
        stmt = stmt.execution_options(populate_existing=True)
        return list(db.session.execute(stmt).scalars().all())

    # -------------------------------------------------
    # Reads
    # -------------------------------------------------

    def select_active(self, published: bool, **filters) -> List[Any]:
        stmt = (
            select(self.model)
            .where(
                self.model.is_published == published,
                self.model.deleted_at.is_(None),
                *self._where(filters),
            )
        )
        with self._guard("select"):
            return self._scalars(stmt)

    def select_deleted(self, **filters) -> List[Any]:
        """Soft-deleted draft rows; the only read that includes them."""
        stmt = (
            select(self.model)
            .where(
                self.model.is_published.is_(False),
                self.model.deleted_at.is_not(None),
                *self._where(filters),
            )
        )
        with self._guard("select_deleted"):
            return self._scalars(stmt)

    def select_deleted_by_keys(self, keys: Iterable[str], key: str = "id") -> List[Any]:
        """select_deleted over a key list, one IN clause per batch."""
        keys = list(dict.fromkeys(keys))
        rows: List[Any] = []
        for chunk in chunked(keys, self.batch_size):
            rows.extend(self.select_deleted(**{key: list(chunk)}))
        return rows

    def select_by_keys(
        self,
        keys: Iterable[str],
        published: bool,
        key: str = "id",
        include_deleted: bool = False,
    ) -> List[Any]:
        keys = list(dict.fromkeys(keys))
        rows: List[Any] = []
        column = getattr(self.model, key)
        for chunk in chunked(keys, self.batch_size):
            stmt = select(self.model).where(
                column.in_(list(chunk)),
                self.model.is_published == published,
            )
            if not include_deleted:
                stmt = stmt.where(self.model.deleted_at.is_(None))
            with self._guard("select_by_keys"):
                rows.extend(self._scalars(stmt))
        return rows

    def get(
        self,
        value: str,
        published: bool,
        key: str = "id",
        include_deleted: bool = False,
        for_update: bool = False,
    ) -> Optional[Any]:
        stmt = select(self.model).where(
            getattr(self.model, key) == value,
            self.model.is_published == published,
        )
        if not include_deleted:
            stmt = stmt.where(self.model.deleted_at.is_(None))
        if for_update:
            stmt = stmt.with_for_update()
        with self._guard("get"):
            return next(iter(self._scalars(stmt.limit(1))), None)

    # -------------------------------------------------
    # Writes
    # -------------------------------------------------

    def insert(self, rows: List[Dict[str, Any]]) -> int:
        if not rows:
            return 0
        count = 0
        for chunk in chunked(rows, self.batch_size):
            with self._guard("insert"):
                db.session.execute(insert(self.table), list(chunk))
            count += len(chunk)
        return count

    def upsert(self, rows: List[Dict[str, Any]], conflict_target: Sequence[str]) -> int:
        """
        INSERT .. ON CONFLICT (conflict_target) DO UPDATE, one statement per chunk.
        Dialects without native upsert fall back to a per-row merge.
        """
        if not rows:
            return 0

        dialect = db.session.get_bind().dialect.name
        dialect_insert = _UPSERT_DIALECTS.get(dialect)
        count = 0

        for chunk in chunked(rows, self.batch_size):
            if dialect_insert is None:
                with self._guard("upsert"):
                    for row in chunk:
                        db.session.merge(self.model(**row))
                    db.session.flush()
                count += len(chunk)
                continue

            stmt = dialect_insert(self.table).values(list(chunk))
            set_ = {
                name: stmt.excluded[name]
                for name in chunk[0].keys()
                if name not in conflict_target
            }
            set_["updated_at"] = local_time_now()
            stmt = stmt.on_conflict_do_update(
                index_elements=list(conflict_target),
                set_=set_,
            )
            with self._guard("upsert"):
                db.session.execute(stmt)
            count += len(chunk)

        return count

    def update(self, row_id: str, values: Dict[str, Any], published: bool = True) -> int:
        stmt = (
            update(self.table)
            .where(self.table.c.id == row_id, self.table.c.is_published == published)
            .values(**values)
        )
        with self._guard("update"):
            result = db.session.execute(stmt)
        return result.rowcount or 0

    def delete_ids(self, ids: Iterable[str], published: bool) -> int:
        ids = list(ids)
        if not ids:
            return 0
        count = 0
        for chunk in chunked(ids, self.batch_size):
            stmt = delete(self.table).where(
                self.table.c.id.in_(list(chunk)),
                self.table.c.is_published == published,
            )
            with self._guard("delete"):
                result = db.session.execute(stmt)
            count += result.rowcount or 0
        return count


class Stores:
    """One EntityStore per publishable kind."""

    def __init__(self):
        from cms_publisher.models import (
            PageFolder,
            Page,
            PageLayers,
            Collection,
            CollectionField,
            CollectionItem,
            CollectionItemValue,
        )

        self.folders = EntityStore(PageFolder)
        self.pages = EntityStore(Page)
        self.layers = EntityStore(PageLayers)
        self.collections = EntityStore(Collection)
        self.fields = EntityStore(CollectionField)
        self.items = EntityStore(CollectionItem)
        self.values = EntityStore(CollectionItemValue)
