from sqlalchemy import event
from cms_publisher.extensions import db
from cms_publisher.domain.publishing.hashing import collection_hash_payload, generate_content_hash
from .base import BaseModel
from .publish_mixins import CompositeKeyMixin, ContentHashMixin
from .soft_delete_mixin import SoftDeleteMixin


class Collection(BaseModel, CompositeKeyMixin, ContentHashMixin, SoftDeleteMixin):
    __tablename__ = "collections"

    name = db.Column(db.String(255), nullable=False)
    sorting = db.Column(db.JSON, nullable=True)
    order = db.Column(db.Integer, nullable=False, default=0)


@event.listens_for(Collection, "before_insert")
@event.listens_for(Collection, "before_update")
def refresh_collection_hash(mapper, connection, target):
    if target.is_published:
        return
    target.content_hash = generate_content_hash(collection_hash_payload(target))
