from unittest.mock import patch

import pytest

from cms_publisher.application.publishing import orchestrator
from cms_publisher.application.publishing.orchestrator import (
    PublishRequest,
    get_publishable_count,
    get_publishable_counts,
    is_publish_needed,
    publish_items,
    publish_root,
    publish_roots,
    publish_site,
)
from cms_publisher.domain.publishing.exceptions import StoreError, ValidationError
from cms_publisher.models import AuditLog, Collection, CollectionItem, Page
from cms_publisher.repositories.entity_store import Stores
from cms_publisher.repositories.settings_store import get_setting, set_setting
from conftest import (
    make_collection,
    make_field,
    make_item,
    make_layers,
    make_page,
    make_value,
    soft_delete,
    published,
)


def test_unknown_collection_fails_that_root_only(app):
    good = make_collection("Blog")

    batch = publish_roots([
        PublishRequest("missing"),
        {"collection_id": good.id},
    ])

    assert batch.summary == {"total": 2, "succeeded": 1, "failed": 1}
    assert "not found" in batch.results[0].errors[0]
    assert batch.results[1].success


def test_item_from_another_collection_is_rejected(app):
    blog = make_collection("Blog")
    news = make_collection("News")
    stray = make_item(news)

    result = publish_root(blog.id, [stray.id])

    assert not result.success
    assert "do not belong" in result.errors[0]
    assert published(Collection) == []


def test_store_failure_rolls_back_the_root(app):
    collection = make_collection("Blog")
    make_item(collection)

    with patch(
        "cms_publisher.application.publishing.orchestrator.cleanup_deleted_collection_content",
        side_effect=StoreError("connection lost", operation="select", table="collection_items"),
    ):
        result = publish_root(collection.id)

    assert not result.success
    assert result.errors == ["connection lost"]
    assert result.totals.created == 0
    # Nothing written before the failure survives
    assert published(Collection) == []
    assert published(CollectionItem) == []


def test_deleted_root_removes_both_states(app):
    collection = make_collection("Blog")
    title = make_field(collection)
    item = make_item(collection)
    make_value(item, title, "x")
    publish_root(collection.id)
    collection_id = collection.id

    soft_delete(collection)
    result = publish_root(collection_id)

    assert result.success
    assert result.totals.to_dict() == {"created": 0, "updated": 0, "unchanged": 0, "deleted": 0}
    assert Collection.query.count() == 0
    assert CollectionItem.query.count() == 0


def test_publish_items_groups_by_collection(app):
    blog = make_collection("Blog")
    news = make_collection("News")
    post = make_item(blog)
    story = make_item(news)
    make_item(news)

    batch = publish_items([post.id, story.id, "missing"])

    assert batch.summary == {"total": 2, "succeeded": 2, "failed": 0}
    assert {r.collection_id for r in batch.results} == {blog.id, news.id}
    assert {i.id for i in published(CollectionItem)} == {post.id, story.id}


def test_publish_needed_and_counts(app, db):
    collection = make_collection("Blog")
    title = make_field(collection)
    item = make_item(collection)
    value = make_value(item, title, "v1")
    make_item(collection, is_publishable=False)

    assert is_publish_needed(collection.id) is True
    assert get_publishable_count(collection.id) == 1

    publish_root(collection.id)

    assert is_publish_needed(collection.id) is False
    assert get_publishable_count(collection.id) == 0

    value.value = "v2"
    db.session.commit()

    assert is_publish_needed(collection.id) is True
    assert get_publishable_counts([collection.id]) == {collection.id: 1}


def test_pending_soft_delete_needs_publish(app):
    collection = make_collection("Blog")
    item = make_item(collection)
    publish_root(collection.id)

    soft_delete(item)

    assert is_publish_needed(collection.id) is True
    assert get_publishable_count(collection.id) == 0


def test_publishable_counts_report_zero_for_failures(app):
    ok = make_collection("Ok")
    make_item(ok)
    broken = make_collection("Broken")
    real = orchestrator.find_items_needing_publish

    def flaky(stores, collection_id, state=None):
        if collection_id == broken.id:
            raise StoreError("timeout", operation="select", table="collection_items")
        return real(stores, collection_id, state)

    with patch.object(orchestrator, "find_items_needing_publish", side_effect=flaky):
        counts = get_publishable_counts([ok.id, broken.id])

    assert counts == {ok.id: 1, broken.id: 0}


def test_request_without_collection_id_is_invalid():
    with pytest.raises(ValidationError):
        PublishRequest.from_dict({"item_ids": ["a"]})


def test_site_publish(app):
    set_setting("draft_css", ".body{margin:0}")
    page = make_page("Home")
    make_layers(page)
    collection = make_collection("Blog")
    make_item(collection)
    gone = make_collection("Gone")
    soft_delete(gone)

    result = publish_site(actor_id="admin")

    assert result.success
    assert result.css_published
    assert result.published_at is not None
    assert get_setting("published_css") == ".body{margin:0}"
    assert get_setting("published_at") == result.published_at
    assert len(published(Page)) == 1

    stats = result.to_dict()["stats"]["tables"]
    assert stats["pages"]["added"] == 1
    assert stats["page_layers"]["added"] == 1
    assert stats["collections"]["added"] == 1
    assert stats["collections"]["deleted"] == 1
    assert stats["collection_items"]["added"] == 1

    actions = {log.action for log in AuditLog.query.all()}
    assert {"site.publish", "pages.publish", "collection.publish"} <= actions


def test_site_publish_skips_settings_when_a_root_fails(app):
    set_setting("draft_css", ".a{}")
    make_collection("Blog")

    with patch.object(orchestrator, "publish_collection_content", side_effect=StoreError("boom")):
        result = publish_site()

    assert not result.success
    assert result.collections.summary["failed"] == 1
    assert result.css_published is False
    assert get_setting("published_css") is None


def test_malformed_request_fails_only_its_own_entry(app):
    ok = make_collection("Blog")
    make_item(ok)

    batch = publish_roots([{"collection_id": ok.id}, {"item_ids": ["x"]}])

    assert batch.summary == {"total": 2, "succeeded": 1, "failed": 1}
    assert batch.results[0].success
    assert batch.results[1].errors == ["collection_id is required"]
    assert len(published(CollectionItem)) == 1


def test_site_publish_reports_sweep_failures(app):
    make_collection("Blog")
    gone = make_collection("Gone")
    soft_delete(gone)
    gone_id = gone.id

    stores = Stores()
    original = stores.collections.delete_ids

    def delete_ids(ids, published):
        if gone_id in ids:
            raise StoreError("locked", operation="delete", table="collections")
        return original(ids, published)

    with patch.object(stores.collections, "delete_ids", side_effect=delete_ids):
        result = publish_site(stores=stores)

    assert result.success
    assert len(result.cleanup_failures) == 1
    assert gone_id in result.cleanup_failures[0]
    assert result.to_dict()["cleanup_failures"] == result.cleanup_failures
    assert result.stats["collections"].deleted == 0
    assert Collection.query.filter_by(id=gone_id).count() == 1


def test_site_publish_survives_store_failure_listing_collections(app):
    set_setting("draft_css", ".a{}")
    make_page("Home")

    stores = Stores()
    with patch.object(
        stores.collections,
        "select_active",
        side_effect=StoreError("timeout", operation="select", table="collections"),
    ):
        result = publish_site(stores=stores)

    assert not result.success
    assert result.errors == ["timeout"]
    assert result.hierarchy.success
    assert result.css_published is False
    assert get_setting("published_css") is None
