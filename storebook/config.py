# storebook/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # Desktop installs keep the SQLite file next to the app; cloud installs set DATABASE_URL
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        "sqlite:///storebook.sqlite3",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Peer instance used by the two-way sync when Settings.remote_url is empty
    DEFAULT_REMOTE_URL = os.environ.get("DEFAULT_REMOTE_URL", "https://smart-summary.replit.app")

    # Shared secret for /api/sync/process; unset means the endpoint is open
    SYNC_TOKEN = os.environ.get("SYNC_TOKEN") or None
    SYNC_TIMEOUT_SECONDS = float(os.environ.get("SYNC_TIMEOUT_SECONDS", "30"))

    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
