from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class ActionCounts:
    created: int = 0
    updated: int = 0
    unchanged: int = 0
    deleted: int = 0

    def add(self, other: "ActionCounts") -> None:
        self.created += other.created
        self.updated += other.updated
        self.unchanged += other.unchanged
        self.deleted += other.deleted

    def to_dict(self) -> Dict[str, int]:
        return {
            "created": self.created,
            "updated": self.updated,
            "unchanged": self.unchanged,
            "deleted": self.deleted,
        }


def _totals(counts: Dict[str, ActionCounts]) -> ActionCounts:
    total = ActionCounts()
    for entry in counts.values():
        total.add(entry)
    return total


COLLECTION_KINDS = ("collection", "fields", "items", "values")
HIERARCHY_KINDS = ("folders", "pages", "layers")


@dataclass
class PublishResult:
    """Outcome of publishing one collection root."""

    collection_id: str
    success: bool = False
    counts: Dict[str, ActionCounts] = field(
        default_factory=lambda: {kind: ActionCounts() for kind in COLLECTION_KINDS}
    )
    errors: List[str] = field(default_factory=list)
    durations_ms: Dict[str, int] = field(default_factory=dict)
    cleanup_failures: List[str] = field(default_factory=list)

    @property
    def totals(self) -> ActionCounts:
        return _totals(self.counts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "collection_id": self.collection_id,
            "success": self.success,
            "counts": {kind: c.to_dict() for kind, c in self.counts.items()},
            "totals": self.totals.to_dict(),
            "errors": list(self.errors),
            "cleanup_failures": list(self.cleanup_failures),
            "durations_ms": dict(self.durations_ms),
        }


@dataclass
class BatchPublishResult:
    results: List[PublishResult] = field(default_factory=list)

    @property
    def summary(self) -> Dict[str, int]:
        succeeded = sum(1 for r in self.results if r.success)
        return {
            "total": len(self.results),
            "succeeded": succeeded,
            "failed": len(self.results) - succeeded,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "results": [r.to_dict() for r in self.results],
            "summary": self.summary,
        }


@dataclass
class HierarchyResult:
    """Outcome of publishing folders -> pages -> page layers."""

    success: bool = False
    counts: Dict[str, ActionCounts] = field(
        default_factory=lambda: {kind: ActionCounts() for kind in HIERARCHY_KINDS}
    )
    folder_ids: Dict[str, str] = field(default_factory=dict)
    page_ids: Dict[str, str] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    durations_ms: Dict[str, int] = field(default_factory=dict)
    cleanup_failures: List[str] = field(default_factory=list)

    @property
    def totals(self) -> ActionCounts:
        return _totals(self.counts)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "counts": {kind: c.to_dict() for kind, c in self.counts.items()},
            "totals": self.totals.to_dict(),
            "errors": list(self.errors),
            "cleanup_failures": list(self.cleanup_failures),
            "durations_ms": dict(self.durations_ms),
        }


@dataclass
class TableStats:
    added: int = 0
    updated: int = 0
    deleted: int = 0
    duration_ms: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            "added": self.added,
            "updated": self.updated,
            "deleted": self.deleted,
            "duration_ms": self.duration_ms,
        }


@dataclass
class SitePublishResult:
    hierarchy: HierarchyResult = field(default_factory=HierarchyResult)
    collections: BatchPublishResult = field(default_factory=BatchPublishResult)
    css_published: bool = False
    published_at: Optional[str] = None
    stats: Dict[str, TableStats] = field(default_factory=dict)
    errors: List[str] = field(default_factory=list)
    cleanup_failures: List[str] = field(default_factory=list)
    total_duration_ms: int = 0

    @property
    def success(self) -> bool:
        return (
            not self.errors
            and self.hierarchy.success
            and self.collections.summary["failed"] == 0
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "hierarchy": self.hierarchy.to_dict(),
            "collections": self.collections.to_dict(),
            "css_published": self.css_published,
            "published_at": self.published_at,
            "errors": list(self.errors),
            "cleanup_failures": list(self.cleanup_failures),
            "stats": {
                "total_duration_ms": self.total_duration_ms,
                "tables": {name: s.to_dict() for name, s in self.stats.items()},
            },
        }
