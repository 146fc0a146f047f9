# cms_publisher/models/publish_mixins.py
from cms_publisher.extensions import db
from .base import new_id


class ContentHashMixin:
    content_hash = db.Column(db.String(64), nullable=True, index=True)


class TwinRowMixin:
    """
    Draft and published rows are separate rows with their own ids.
    `link_key` is generated once for the draft and copied onto its published twin.
    """
    link_key = db.Column(db.String(64), nullable=False, default=new_id, index=True)
    is_published = db.Column(db.Boolean, nullable=False, default=False, index=True)


class CompositeKeyMixin:
    """
    Draft and published rows share `id`; (id, is_published) is the full key.
    """
    is_published = db.Column(db.Boolean, primary_key=True, default=False)
