from sqlalchemy import event
from cms_publisher.extensions import db
from cms_publisher.domain.publishing.hashing import folder_hash_payload, generate_content_hash
from .base import BaseModel
from .publish_mixins import TwinRowMixin, ContentHashMixin
from .soft_delete_mixin import SoftDeleteMixin


class PageFolder(BaseModel, TwinRowMixin, ContentHashMixin, SoftDeleteMixin):
    __tablename__ = "page_folders"

    page_folder_id = db.Column(
        db.String(36),
        db.ForeignKey("page_folders.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(255), nullable=False, index=True)
    depth = db.Column(db.Integer, nullable=False, default=0)
    order = db.Column(db.Integer, nullable=False, default=0)
    settings = db.Column(db.JSON, default=dict)

    __table_args__ = (
        db.UniqueConstraint("link_key", "is_published", name="uq_page_folder_link_key"),
    )


@event.listens_for(PageFolder, "before_insert")
@event.listens_for(PageFolder, "before_update")
def refresh_folder_hash(mapper, connection, target):
    if target.is_published:
        return
    target.content_hash = generate_content_hash(folder_hash_payload(target))
