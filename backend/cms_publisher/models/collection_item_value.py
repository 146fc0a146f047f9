from cms_publisher.extensions import db
from .base import BaseModel
from .publish_mixins import CompositeKeyMixin
from .soft_delete_mixin import SoftDeleteMixin


class CollectionItemValue(BaseModel, CompositeKeyMixin, SoftDeleteMixin):
    __tablename__ = "collection_item_values"

    item_id = db.Column(db.String(36), nullable=False, index=True)
    field_id = db.Column(db.String(36), nullable=False, index=True)
    value = db.Column(db.Text, nullable=True)

    __table_args__ = (
        db.ForeignKeyConstraint(
            ["item_id", "is_published"],
            ["collection_items.id", "collection_items.is_published"],
            ondelete="CASCADE",
            name="fk_item_values_item",
        ),
        db.ForeignKeyConstraint(
            ["field_id", "is_published"],
            ["collection_fields.id", "collection_fields.is_published"],
            ondelete="CASCADE",
            name="fk_item_values_field",
        ),
        db.Index("idx_values_item", "item_id", "is_published"),
    )
