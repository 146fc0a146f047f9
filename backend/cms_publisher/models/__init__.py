from .page_folder import PageFolder
from .page import Page
from .page_layers import PageLayers
from .collection import Collection
from .collection_field import CollectionField
from .collection_item import CollectionItem
from .collection_item_value import CollectionItemValue
from .setting import Setting
from .audit_log import AuditLog

__all__ = [
    "PageFolder",
    "Page",
    "PageLayers",
    "Collection",
    "CollectionField",
    "CollectionItem",
    "CollectionItemValue",
    "Setting",
    "AuditLog",
]
