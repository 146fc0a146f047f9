from cms_publisher.extensions import db
from .base import BaseModel


class Setting(BaseModel):
    __tablename__ = "settings"

    key = db.Column(db.String(100), unique=True, nullable=False, index=True)
    value = db.Column(db.JSON, nullable=True)
