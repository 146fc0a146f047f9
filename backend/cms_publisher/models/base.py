from datetime import datetime, timezone
import uuid
from cms_publisher.extensions import db


def local_time_now():
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


class BaseModel(db.Model):
    __abstract__ = True

    id = db.Column(db.String(36), primary_key=True, default=new_id, index=True)
    created_at = db.Column(db.DateTime(timezone=True), default=local_time_now, index=True)
    updated_at = db.Column(db.DateTime(timezone=True), default=local_time_now, onupdate=local_time_now, index=True)

    def __init__(self, **kwargs):
        """
        Dummy __init__ to satisfy static type checkers (Pylance, MyPy).
        SQLAlchemy ORM will populate fields dynamically.
        """
        super().__init__(**kwargs)
