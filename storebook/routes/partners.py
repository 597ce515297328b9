# Overview: Flask API routes for customers and suppliers.

from flask import Blueprint, current_app, request

from ..decorators import require_auth
from ..models import Partner
from ..services import products_service
from ..validation import (
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_partner,
    validate_payload,
)

PARTNER_POLICY = ModelValidationPolicy(
    writable_fields=products_service.PARTNER_MUTABLE_FIELDS,
    required_on_create={"name", "type"},
)

partners_bp = Blueprint("partners", __name__, url_prefix="/api/partners")


@partners_bp.get("")
@require_auth
def list_partners():
    rows = products_service.list_partners(
        type=request.args.get("type"),
        search=request.args.get("search"),
    )
    return {"items": [p.to_dict() for p in rows]}


@partners_bp.post("")
@require_auth
def create_partner_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Partner, payload=payload, policy=PARTNER_POLICY, partial=False)
        enforce_rules_partner(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        partner = products_service.create_partner(patch=patch)
    except Exception:
        current_app.logger.exception("Failed to create partner")
        return {"error": "Internal server error"}, 500
    return partner.to_dict(), 201


@partners_bp.put("/<int:partner_id>")
@require_auth
def update_partner_route(partner_id: int):
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Partner, payload=payload, policy=PARTNER_POLICY, partial=True)
        enforce_rules_partner(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    partner = products_service.update_partner(partner_id=partner_id, patch=patch)
    if not partner:
        return {"error": "Partner not found"}, 404
    return partner.to_dict()
