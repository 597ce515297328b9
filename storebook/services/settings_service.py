# Overview: Singleton store settings, including the sync peer and last sync outcome.

from __future__ import annotations

from ..extensions import db
from ..models import Settings
from ..time_utils import utcnow

SETTINGS_MUTABLE_FIELDS = {"store_name", "currency", "address", "phone", "theme", "remote_url"}


def get_settings() -> Settings:
    """
    Return the settings row, creating it with defaults on first read.

    Safe to call repeatedly (idempotent).
    """
    settings = db.session.query(Settings).order_by(Settings.id.asc()).first()
    if settings:
        return settings

    settings = Settings()
    db.session.add(settings)
    db.session.commit()
    return settings


def update_settings(patch: dict) -> Settings:
    settings = get_settings()
    for k, v in patch.items():
        if k in SETTINGS_MUTABLE_FIELDS:
            setattr(settings, k, v)
    db.session.commit()
    return settings


def record_sync_result(*, success: bool, error: str | None = None) -> Settings:
    settings = get_settings()
    settings.last_sync_at = utcnow()
    settings.last_sync_status = "success" if success else "error"
    settings.last_sync_error = None if success else (error or "unknown error")[:2000]
    db.session.commit()
    return settings
