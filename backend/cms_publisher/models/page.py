from sqlalchemy import event
from cms_publisher.extensions import db
from cms_publisher.domain.publishing.hashing import page_hash_payload, generate_content_hash
from .base import BaseModel
from .publish_mixins import TwinRowMixin, ContentHashMixin
from .soft_delete_mixin import SoftDeleteMixin

class Page(BaseModel, TwinRowMixin, ContentHashMixin, SoftDeleteMixin):
    __tablename__ = 'pages'

    page_folder_id = db.Column(
        db.String(36),
        db.ForeignKey("page_folders.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    name = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(255), nullable=False, index=True)
    order = db.Column(db.Integer, default=0)
    depth = db.Column(db.Integer, default=0)
    is_index = db.Column(db.Boolean, default=False)
    is_dynamic = db.Column(db.Boolean, default=False)
    error_page = db.Column(db.Integer, nullable=True)  # 401 | 404 | 500
    settings = db.Column(db.JSON, default=dict)  # seo, auth, cms source, custom code

    __table_args__ = (
        db.UniqueConstraint("link_key", "is_published", name="uq_page_link_key"),
    )


@event.listens_for(Page, "before_insert")
@event.listens_for(Page, "before_update")
def refresh_page_hash(mapper, connection, target):
    if target.is_published:
        return
    target.content_hash = generate_content_hash(page_hash_payload(target))
