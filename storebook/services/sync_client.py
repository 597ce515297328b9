# Overview: Two-way sync orchestrator; pushes local state to the peer, then applies the peer's state locally.

from __future__ import annotations

import logging

import httpx
from flask import current_app

from ..extensions import db
from ..validation import ValidationError
from .settings_service import get_settings, record_sync_result
from .sync_service import SYNC_COLLECTIONS, reconcile, snapshot

logger = logging.getLogger(__name__)

SYNC_PATH = "/api/sync/process"


class SyncTransportError(Exception):
    """A sync leg could not be completed (unreachable peer, non-2xx, bad body)."""
    def __init__(self, message: str, *, leg: str, status_code: int | None = None):
        super().__init__(message)
        self.leg = leg
        self.status_code = status_code


def resolve_remote_url(remote_url: str | None = None) -> str:
    """Explicit argument, then Settings.remote_url, then DEFAULT_REMOTE_URL."""
    url = remote_url or get_settings().remote_url or current_app.config.get("DEFAULT_REMOTE_URL")
    if not url:
        raise ValidationError("No remote URL configured")
    return url


def build_sync_url(remote_url: str) -> str:
    return remote_url.rstrip("/") + SYNC_PATH


def _sync_headers() -> dict:
    headers = {"Content-Type": "application/json"}
    token = current_app.config.get("SYNC_TOKEN")
    if token:
        headers["X-Sync-Token"] = token
    return headers


def push_to_remote(local_state: dict, remote_url: str, *, client: httpx.Client) -> dict:
    """
    First leg: POST our snapshot to the peer's reconciler.

    Returns the peer's response body; its `current_state` is the input of the
    second leg.
    """
    url = build_sync_url(remote_url)
    try:
        response = client.post(url, json=local_state, headers=_sync_headers())
    except httpx.HTTPError as exc:
        raise SyncTransportError(f"Remote sync failed: {exc}", leg="remote") from exc

    if not response.is_success:
        raise SyncTransportError(
            f"Remote sync failed with HTTP {response.status_code}",
            leg="remote",
            status_code=response.status_code,
        )

    try:
        body = response.json()
    except ValueError as exc:
        raise SyncTransportError("Remote sync returned invalid JSON", leg="remote") from exc

    if not isinstance(body, dict) or not isinstance(body.get("current_state"), dict):
        raise SyncTransportError("Remote sync response has no current_state", leg="remote")
    return body


def run_two_way_sync(remote_url: str | None = None, *, client: httpx.Client | None = None) -> dict:
    """
    Run one two-way sync: local -> remote, then remote result -> local.

    Each leg runs exactly once, in order. A transport or payload failure on
    either leg raises SyncTransportError. Every failure is recorded on
    Settings before it propagates. Rows the peer or this instance already
    applied stay applied, and the next trigger starts over.
    """
    url = resolve_remote_url(remote_url)
    local_state = snapshot()

    owns_client = client is None
    if owns_client:
        client = httpx.Client(timeout=current_app.config.get("SYNC_TIMEOUT_SECONDS", 30))

    logger.info("Starting two-way sync with %s", url)
    try:
        remote_body = push_to_remote(local_state, url, client=client)
        try:
            local_result = reconcile(remote_body["current_state"])
        except ValidationError as exc:
            raise SyncTransportError(f"Local update failed: {exc}", leg="local") from exc
    except SyncTransportError as exc:
        logger.error("Sync with %s failed on %s leg: %s", url, exc.leg, exc)
        record_sync_result(success=False, error=str(exc))
        raise
    except Exception as exc:
        db.session.rollback()
        logger.exception("Sync with %s failed", url)
        record_sync_result(success=False, error=f"Sync failed: {exc}")
        raise
    finally:
        if owns_client:
            client.close()

    record_sync_result(success=True)
    logger.info("Two-way sync with %s completed", url)

    return {
        "remote_url": url,
        "pushed": {c: len(local_state[c]) for c in SYNC_COLLECTIONS},
        "pulled": local_result["received_count"],
        "conflicts": {
            "remote": remote_body.get("conflicts", []),
            "local": local_result["conflicts"],
        },
    }
