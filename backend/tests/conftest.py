import pytest
from cms_publisher import create_app
from cms_publisher.extensions import db as _db
from cms_publisher.models import (
    PageFolder,
    Page,
    PageLayers,
    Collection,
    CollectionField,
    CollectionItem,
    CollectionItemValue,
)


@pytest.fixture
def app():
    app = create_app("testing")
    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def runner(app):
    return app.test_cli_runner()


def _save(row):
    _db.session.add(row)
    _db.session.commit()
    return row


# ------------------------
# Draft factories
# ------------------------

def make_folder(name="Blog", parent=None, order=0, settings=None):
    folder = PageFolder()
    folder.name = name
    folder.slug = name.lower().replace(" ", "-")
    folder.page_folder_id = parent.id if parent is not None else None
    folder.depth = parent.depth + 1 if parent is not None else 0
    folder.order = order
    folder.settings = settings or {}
    return _save(folder)


def make_page(name="Home", folder=None, order=0, settings=None):
    page = Page()
    page.name = name
    page.slug = name.lower().replace(" ", "-")
    page.page_folder_id = folder.id if folder is not None else None
    page.depth = folder.depth + 1 if folder is not None else 0
    page.order = order
    page.settings = settings or {}
    return _save(page)


def make_layers(page, layers=None, css=None):
    row = PageLayers()
    row.page_id = page.id
    row.layers = layers if layers is not None else [{"id": "body", "name": "div", "children": []}]
    row.generated_css = css
    return _save(row)


def make_collection(name="Blog Posts", order=0):
    collection = Collection()
    collection.name = name
    collection.order = order
    collection.sorting = {"field": "created_at", "direction": "desc"}
    return _save(collection)


def make_field(collection, name="Title", key="title", type="text", order=0):
    field = CollectionField()
    field.collection_id = collection.id
    field.name = name
    field.key = key
    field.type = type
    field.order = order
    return _save(field)


def make_item(collection, manual_order=0, is_publishable=True):
    item = CollectionItem()
    item.collection_id = collection.id
    item.manual_order = manual_order
    item.is_publishable = is_publishable
    return _save(item)


def make_value(item, field, value):
    row = CollectionItemValue()
    row.item_id = item.id
    row.field_id = field.id
    row.value = value
    return _save(row)


def soft_delete(row):
    row.soft_delete()
    _db.session.commit()
    return row


def published(model, **filters):
    return model.query.filter_by(is_published=True, **filters).all()


def drafts(model, **filters):
    return model.query.filter_by(is_published=False, **filters).all()
