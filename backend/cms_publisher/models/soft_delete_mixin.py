# cms_publisher/models/soft_delete_mixin.py
from cms_publisher.extensions import db
from .base import local_time_now

class SoftDeleteMixin:
    deleted_at = db.Column(db.DateTime(timezone=True), nullable=True)

    def soft_delete(self):
        self.deleted_at = local_time_now()

    @property
    def is_deleted(self):
        return self.deleted_at is not None
