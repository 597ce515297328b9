from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Settings(db.Model):
    """
    Store-wide settings. Singleton: the first read creates the row.

    remote_url is the peer instance used by the two-way sync; the last_sync_*
    columns record the outcome of the most recent trigger.
    """
    __tablename__ = "settings"

    id = db.Column(db.Integer, primary_key=True)
    store_name = db.Column(db.String(255), nullable=True, default="My Store")
    currency = db.Column(db.String(8), nullable=True, default="USD")
    address = db.Column(db.Text, nullable=True)
    phone = db.Column(db.String(64), nullable=True)
    theme = db.Column(db.String(16), nullable=True, default="light")
    remote_url = db.Column(db.String(512), nullable=True)

    last_sync_at = db.Column(db.DateTime(timezone=True), nullable=True)
    last_sync_status = db.Column(db.String(16), nullable=True)  # success | error
    last_sync_error = db.Column(db.Text, nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "store_name": self.store_name,
            "currency": self.currency,
            "address": self.address,
            "phone": self.phone,
            "theme": self.theme,
            "remote_url": self.remote_url,
            "last_sync_at": to_utc_z(self.last_sync_at) if self.last_sync_at else None,
            "last_sync_status": self.last_sync_status,
            "last_sync_error": self.last_sync_error,
        }
