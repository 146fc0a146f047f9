# cms_publisher/repositories/settings_store.py
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from cms_publisher.extensions import db
from cms_publisher.models.setting import Setting
from cms_publisher.domain.publishing.exceptions import StoreError

DRAFT_CSS = "draft_css"
PUBLISHED_CSS = "published_css"
PUBLISHED_AT = "published_at"


def _find(key: str) -> Optional[Setting]:
    try:
        return db.session.execute(
            select(Setting).where(Setting.key == key)
        ).scalar_one_or_none()
    except SQLAlchemyError as exc:
        raise StoreError(f"reading setting {key} failed: {exc}", operation="select", table="settings") from exc


def get_setting(key: str, default: Any = None) -> Any:
    setting = _find(key)
    return default if setting is None else setting.value


def set_setting(key: str, value: Any) -> Setting:
    """Create or overwrite a setting. Flushed, not committed."""
    setting = _find(key)
    if setting is None:
        setting = Setting(key=key)
        db.session.add(setting)
    setting.value = value

    try:
        db.session.flush()
    except SQLAlchemyError as exc:
        raise StoreError(f"writing setting {key} failed: {exc}", operation="upsert", table="settings") from exc
    return setting
