from sqlalchemy import event
from cms_publisher.extensions import db
from cms_publisher.domain.publishing.hashing import field_hash_payload, generate_content_hash
from .base import BaseModel
from .publish_mixins import CompositeKeyMixin, ContentHashMixin
from .soft_delete_mixin import SoftDeleteMixin


class CollectionField(BaseModel, CompositeKeyMixin, ContentHashMixin, SoftDeleteMixin):
    __tablename__ = "collection_fields"

    collection_id = db.Column(db.String(36), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    key = db.Column(db.String(255), nullable=True)
    type = db.Column(db.String(50), nullable=False)  # text, number, date, reference, status ...
    default = db.Column(db.Text, nullable=True)
    fillable = db.Column(db.Boolean, nullable=False, default=True)
    order = db.Column(db.Integer, nullable=False, default=0)
    hidden = db.Column(db.Boolean, nullable=False, default=False)
    is_computed = db.Column(db.Boolean, nullable=False, default=False)
    data = db.Column(db.JSON, default=dict)

    __table_args__ = (
        db.ForeignKeyConstraint(
            ["collection_id", "is_published"],
            ["collections.id", "collections.is_published"],
            ondelete="CASCADE",
            name="fk_collection_fields_collection",
        ),
        db.Index("idx_fields_collection", "collection_id", "is_published"),
    )


@event.listens_for(CollectionField, "before_insert")
@event.listens_for(CollectionField, "before_update")
def refresh_field_hash(mapper, connection, target):
    if target.is_published:
        return
    target.content_hash = generate_content_hash(field_hash_payload(target))
