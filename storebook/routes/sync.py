# Overview: Flask API routes for two-way sync between instances.

"""
Sync routes.

- POST /api/sync/process is called by a peer. It merges the posted snapshot
  and answers with this instance's resulting state.
- POST /api/sync/trigger is called by a signed-in user and runs both legs
  against the configured peer.
"""

from flask import Blueprint, current_app, request

from ..decorators import require_auth, require_sync_token
from ..services import sync_service
from ..services.sync_client import SyncTransportError, run_two_way_sync
from ..validation import ValidationError

sync_bp = Blueprint("sync", __name__, url_prefix="/api/sync")


@sync_bp.post("/process")
@require_sync_token
def process_sync_route():
    payload = request.get_json(silent=True)
    if payload is None:
        return {"error": "Invalid JSON payload"}, 400

    try:
        result = sync_service.reconcile(payload)
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to process sync")
        return {"error": "Internal server error"}, 500

    return {"success": True, **result}


@sync_bp.post("/trigger")
@require_auth
def trigger_sync_route():
    """
    Body (optional): {"remote_url": str}

    502 when the peer is unreachable or either leg fails.
    """
    payload = request.get_json(silent=True) or {}
    remote_url = payload.get("remote_url") if isinstance(payload, dict) else None
    if remote_url is not None and not isinstance(remote_url, str):
        return {"error": "remote_url must be a string"}, 400

    try:
        summary = run_two_way_sync(remote_url or None)
    except SyncTransportError as e:
        return {"error": str(e), "leg": e.leg}, 502
    except ValidationError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to run sync")
        return {"error": "Internal server error"}, 500

    return {"success": True, **summary}
