from types import SimpleNamespace
from unittest.mock import Mock

from cms_publisher.application.publishing.batch_upsert import execute_plan, plan_upserts
from cms_publisher.domain.publishing.identity import CompositeKeyStrategy, IdMap, TwinRowStrategy


def _row(id, link_key=None, content_hash=None, **columns):
    return SimpleNamespace(id=id, link_key=link_key or f"key-{id}", content_hash=content_hash, **columns)


def test_plan_splits_create_update_and_skip(app):
    strategy = TwinRowStrategy(store=Mock())
    drafts = [
        _row("new", content_hash="h1", name="New"),
        _row("changed", content_hash="h2", name="Changed"),
        _row("same", content_hash="h3", name="Same"),
    ]
    twins = {
        "new": None,
        "changed": _row("pub-changed", content_hash="old", name="Old"),
        "same": _row("pub-same", content_hash="h3", name="Same"),
    }

    plan = plan_upserts("pages", strategy, drafts, twins, ["name", "content_hash"])

    assert [d.id for d, _ in plan.creates] == ["new"]
    assert [d.id for d, _, _ in plan.updates] == ["changed"]
    assert [d.id for d, _ in plan.unchanged] == ["same"]
    assert len(plan) == 3


def test_force_rewrites_unchanged_rows(app):
    strategy = CompositeKeyStrategy(store=Mock())
    draft = _row("v1", value="a")
    twin = _row("v1", value="a")

    plan = plan_upserts("values", strategy, [draft], {"v1": twin}, ["value"], compare_fields=["value"], force=True)

    assert len(plan.updates) == 1
    assert plan.unchanged == []


def test_execute_records_every_resolved_id(app):
    store = Mock()
    store.insert.return_value = 1
    store.update.return_value = 1
    strategy = TwinRowStrategy(store)
    drafts = [
        _row("d-new", content_hash="a", name="A"),
        _row("d-changed", content_hash="b", name="B"),
        _row("d-same", content_hash="c", name="C"),
    ]
    twins = {
        "d-new": None,
        "d-changed": _row("p-changed", content_hash="x"),
        "d-same": _row("p-same", content_hash="c"),
    }
    plan = plan_upserts("page_folders", strategy, drafts, twins, ["name", "content_hash"])
    id_map = IdMap(strict=True)

    counts = execute_plan(strategy, plan, id_map)

    assert counts.to_dict() == {"created": 1, "updated": 1, "unchanged": 1, "deleted": 0}
    assert id_map.remap("d-changed") == "p-changed"
    assert id_map.remap("d-same") == "p-same"
    new_id = id_map.remap("d-new")
    assert new_id is not None and new_id != "d-new"

    # One batched insert for every create
    store.insert.assert_called_once()
    inserted = store.insert.call_args.args[0]
    assert inserted[0]["id"] == new_id
    assert inserted[0]["is_published"] is True
