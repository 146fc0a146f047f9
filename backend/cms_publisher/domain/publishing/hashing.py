"""
Content hashing and change detection.

A draft row carries `content_hash`, recomputed on every draft write. Its
published twin carries the hash copied at publish time, so equal hashes are
enough to prove nothing user-visible changed.
"""
import hashlib
import json
from typing import Any, Dict, Iterable, Mapping, Optional


def _canonical(value: Any) -> str:
    return json.dumps(
        value,
        sort_keys=True,
        ensure_ascii=False,
        separators=(",", ":"),
        default=str,
    )


def generate_content_hash(content: Any) -> str:
    """
    SHA-256 hex digest of any JSON-serialisable payload.
    Key order never affects the result.
    """
    if content is None:
        serialized = "null"
    else:
        serialized = _canonical(content)
    return hashlib.sha256(serialized.encode("utf-8")).hexdigest()


# -------------------------------------------------
# Per-kind payloads (user-visible columns only)
# -------------------------------------------------

def folder_hash_payload(folder) -> Dict[str, Any]:
    return {
        "name": folder.name,
        "slug": folder.slug,
        "parent": folder.page_folder_id,
        "depth": folder.depth or 0,
        "order": folder.order or 0,
        "settings": folder.settings or {},
    }


def page_hash_payload(page) -> Dict[str, Any]:
    return {
        "name": page.name,
        "slug": page.slug,
        "folder": page.page_folder_id,
        "order": page.order or 0,
        "depth": page.depth or 0,
        "is_index": bool(page.is_index),
        "is_dynamic": bool(page.is_dynamic),
        "error_page": page.error_page,
        "settings": page.settings or {},
    }


def layers_hash_payload(page_layers) -> Dict[str, Any]:
    return {
        "layers": page_layers.layers if page_layers.layers is not None else [],
        "generated_css": page_layers.generated_css,
    }


def collection_hash_payload(collection) -> Dict[str, Any]:
    return {
        "name": collection.name,
        "sorting": collection.sorting,
        "order": collection.order or 0,
    }


def field_hash_payload(field) -> Dict[str, Any]:
    return {
        "name": field.name,
        "key": field.key,
        "type": field.type,
        "default": field.default,
        "fillable": bool(field.fillable),
        "order": field.order or 0,
        "hidden": bool(field.hidden),
        "is_computed": bool(field.is_computed),
        "data": field.data or {},
    }


# -------------------------------------------------
# Change detection
# -------------------------------------------------

def _same(a: Any, b: Any) -> bool:
    if isinstance(a, (dict, list)) or isinstance(b, (dict, list)):
        return _canonical(a) == _canonical(b)
    return a == b


def needs_publish(draft, published, compare_fields: Optional[Iterable[str]] = None) -> bool:
    """
    True when the draft must be written to the published side.

    - no published twin -> True
    - both hashes present -> hashes differ
    - otherwise compare `compare_fields` one by one
    """
    if published is None:
        return True

    draft_hash = getattr(draft, "content_hash", None)
    published_hash = getattr(published, "content_hash", None)
    if draft_hash and published_hash:
        return draft_hash != published_hash

    if not compare_fields:
        # Nothing comparable: publishing is the only safe answer
        return True

    return any(
        not _same(getattr(draft, name, None), getattr(published, name, None))
        for name in compare_fields
    )


def values_differ(draft_values: Mapping[str, Any], published_values: Mapping[str, Any]) -> bool:
    """
    Field-by-field comparison of two `field_id -> value` maps.
    """
    if len(draft_values) != len(published_values):
        return True

    for field_id, draft_value in draft_values.items():
        if field_id not in published_values:
            return True
        if draft_value != published_values[field_id]:
            return True

    return False
