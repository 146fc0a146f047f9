import hashlib
from types import SimpleNamespace

from cms_publisher.domain.publishing.hashing import (
    generate_content_hash,
    needs_publish,
    page_hash_payload,
    values_differ,
)


def test_hash_ignores_key_order():
    assert generate_content_hash({"a": 1, "b": [1, 2]}) == generate_content_hash({"b": [1, 2], "a": 1})


def test_none_hashes_as_null():
    assert generate_content_hash(None) == hashlib.sha256(b"null").hexdigest()


def test_hash_changes_with_content():
    assert generate_content_hash({"name": "Home"}) != generate_content_hash({"name": "About"})


def test_page_payload_excludes_bookkeeping():
    page = SimpleNamespace(
        id="p1", link_key="k1", updated_at="yesterday",
        name="Home", slug="home", page_folder_id=None, order=0, depth=0,
        is_index=True, is_dynamic=False, error_page=None, settings={},
    )
    same_content = SimpleNamespace(**{**vars(page), "id": "p2", "updated_at": "today"})

    assert generate_content_hash(page_hash_payload(page)) == generate_content_hash(page_hash_payload(same_content))


def test_needs_publish_without_twin():
    assert needs_publish(SimpleNamespace(content_hash="x"), None) is True


def test_needs_publish_compares_hashes_first():
    draft = SimpleNamespace(content_hash="abc", name="new")
    twin = SimpleNamespace(content_hash="abc", name="old")

    # Equal hashes are enough, columns are not looked at
    assert needs_publish(draft, twin, ["name"]) is False
    assert needs_publish(draft, SimpleNamespace(content_hash="def", name="new"), ["name"]) is True


def test_needs_publish_falls_back_to_fields():
    draft = SimpleNamespace(manual_order=1, data={"b": 2, "a": 1})
    same = SimpleNamespace(manual_order=1, data={"a": 1, "b": 2})
    moved = SimpleNamespace(manual_order=2, data={"a": 1, "b": 2})

    assert needs_publish(draft, same, ["manual_order", "data"]) is False
    assert needs_publish(draft, moved, ["manual_order", "data"]) is True


def test_needs_publish_without_anything_to_compare():
    assert needs_publish(SimpleNamespace(), SimpleNamespace()) is True


def test_values_differ():
    assert values_differ({"f1": "a"}, {"f1": "a"}) is False
    assert values_differ({"f1": "a"}, {"f1": "b"}) is True
    assert values_differ({"f1": "a", "f2": "b"}, {"f1": "a"}) is True
    assert values_differ({"f1": "a"}, {"f2": "a"}) is True
    assert values_differ({}, {}) is False
