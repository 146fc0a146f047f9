from sqlalchemy import event
from cms_publisher.extensions import db
from cms_publisher.domain.publishing.hashing import layers_hash_payload, generate_content_hash
from .base import BaseModel
from .publish_mixins import TwinRowMixin, ContentHashMixin
from .soft_delete_mixin import SoftDeleteMixin


class PageLayers(BaseModel, TwinRowMixin, ContentHashMixin, SoftDeleteMixin):
    __tablename__ = "page_layers"

    page_id = db.Column(
        db.String(36),
        db.ForeignKey("pages.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    layers = db.Column(db.JSON, nullable=False, default=list)
    generated_css = db.Column(db.Text, nullable=True)

    __table_args__ = (
        db.UniqueConstraint("link_key", "is_published", name="uq_page_layers_link_key"),
    )


@event.listens_for(PageLayers, "before_insert")
@event.listens_for(PageLayers, "before_update")
def refresh_layers_hash(mapper, connection, target):
    if target.is_published:
        return
    target.content_hash = generate_content_hash(layers_hash_payload(target))
