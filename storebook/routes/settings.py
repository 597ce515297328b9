# Overview: Flask API routes for store settings.

from flask import Blueprint, current_app, request

from ..decorators import require_admin, require_auth
from ..models import Settings
from ..services import settings_service
from ..validation import ModelValidationPolicy, ValidationError, validate_payload

SETTINGS_POLICY = ModelValidationPolicy(
    writable_fields=settings_service.SETTINGS_MUTABLE_FIELDS,
    required_on_create=set(),
)

settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("")
@require_auth
def get_settings_route():
    return settings_service.get_settings().to_dict()


@settings_bp.put("")
@require_auth
@require_admin
def update_settings_route():
    """
    Update store settings (admin only). Sync status fields are read-only.
    """
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Settings, payload=payload, policy=SETTINGS_POLICY, partial=True)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        settings = settings_service.update_settings(patch)
    except Exception:
        current_app.logger.exception("Failed to update settings")
        return {"error": "Internal server error"}, 500
    return settings.to_dict()
