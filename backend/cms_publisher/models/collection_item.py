from cms_publisher.extensions import db
from .base import BaseModel
from .publish_mixins import CompositeKeyMixin
from .soft_delete_mixin import SoftDeleteMixin


class CollectionItem(BaseModel, CompositeKeyMixin, SoftDeleteMixin):
    __tablename__ = "collection_items"

    collection_id = db.Column(db.String(36), nullable=False, index=True)
    manual_order = db.Column(db.Integer, nullable=False, default=0)
    # Per-item opt out from "publish everything pending"
    is_publishable = db.Column(db.Boolean, nullable=False, default=True)

    __table_args__ = (
        db.ForeignKeyConstraint(
            ["collection_id", "is_published"],
            ["collections.id", "collections.is_published"],
            ondelete="CASCADE",
            name="fk_collection_items_collection",
        ),
        db.Index("idx_items_collection", "collection_id", "is_published"),
    )
