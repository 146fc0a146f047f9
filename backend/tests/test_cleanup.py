from unittest.mock import patch

from cms_publisher.application.publishing.cleanup import cleanup_deleted_collections
from cms_publisher.application.publishing.orchestrator import publish_pages, publish_root
from cms_publisher.domain.publishing.exceptions import StoreError
from cms_publisher.models import Collection, CollectionItem, CollectionItemValue, Page
from cms_publisher.repositories.entity_store import Stores
from conftest import make_collection, make_field, make_item, make_page, make_value, soft_delete, published, drafts


def _failing_delete_for(store, bad_id):
    original = store.delete_ids

    def delete_ids(ids, published):
        if bad_id in ids:
            raise StoreError("disk full", operation="delete", table=store.table.name)
        return original(ids, published)

    return delete_ids


def test_failed_item_cleanup_does_not_block_siblings(app):
    collection = make_collection("Blog")
    title = make_field(collection)
    broken = make_item(collection)
    fine = make_item(collection)
    make_value(broken, title, "a")
    make_value(fine, title, "b")
    publish_root(collection.id)
    broken_id, fine_id = broken.id, fine.id

    soft_delete(broken)
    soft_delete(fine)

    stores = Stores()
    with patch.object(stores.items, "delete_ids", side_effect=_failing_delete_for(stores.items, broken_id)):
        result = publish_root(collection.id, stores=stores)

    assert result.success
    assert result.errors == []
    assert len(result.cleanup_failures) == 1
    assert broken_id in result.cleanup_failures[0]
    assert result.counts["items"].deleted == 1

    # The failed item is still there in both states, the other one is gone
    assert {i.id for i in published(CollectionItem)} == {broken_id}
    assert {i.id for i in drafts(CollectionItem)} == {broken_id}
    assert fine_id not in {i.id for i in CollectionItem.query.all()}


def test_failed_page_cleanup_is_reported_not_raised(app):
    bad = make_page("Bad")
    good = make_page("Good")
    publish_pages()
    bad_id, good_link = bad.id, good.link_key

    soft_delete(bad)
    soft_delete(good)

    stores = Stores()
    with patch.object(stores.pages, "delete_ids", side_effect=_failing_delete_for(stores.pages, bad_id)):
        result = publish_pages(stores=stores)

    assert result.success
    assert len(result.cleanup_failures) == 1
    assert result.counts["pages"].deleted == 1
    assert Page.query.filter_by(link_key=good_link).count() == 0
    assert [p.id for p in drafts(Page)] == [bad_id]


def test_deleted_collections_sweep(app, db):
    gone = make_collection("Gone")
    make_item(gone)
    kept = make_collection("Kept")
    publish_root(gone.id)
    publish_root(kept.id)
    gone_id, kept_id = gone.id, kept.id

    soft_delete(gone)
    removed, failures = cleanup_deleted_collections(Stores())
    db.session.commit()

    assert removed == [gone_id]
    assert failures == []
    assert {c.id for c in Collection.query.all()} == {kept_id}
    assert CollectionItem.query.count() == 0


def test_deleted_values_are_read_in_batches(app):
    # Testing config uses a batch size of 2
    collection = make_collection("Blog")
    title = make_field(collection)
    values = [make_value(make_item(collection, manual_order=n), title, str(n)) for n in range(3)]
    publish_root(collection.id)
    for value in values:
        soft_delete(value)

    stores = Stores()
    with patch.object(stores.values, "select_deleted", wraps=stores.values.select_deleted) as spy:
        result = publish_root(collection.id, stores=stores)

    assert result.success
    assert spy.call_count == 2
    assert all(len(call.kwargs["item_id"]) <= 2 for call in spy.call_args_list)
    assert CollectionItemValue.query.count() == 0
