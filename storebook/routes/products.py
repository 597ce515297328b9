# Overview: Flask API routes for products operations; parses input and returns JSON responses.

"""
Product management routes.

Stock (`quantity`) may be given when a product is created. Afterwards it is
read-only here; it moves through postings and sync only.
"""
from flask import Blueprint, current_app, request

from ..decorators import require_auth
from ..extensions import db
from ..models import Product
from ..services import products_service
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    ValidationError,
    enforce_rules_product,
    validate_payload,
)

PRODUCT_CREATE_POLICY = ModelValidationPolicy(
    writable_fields=products_service.PRODUCT_MUTABLE_FIELDS | {"quantity"},
    required_on_create={"name"},
)

PRODUCT_UPDATE_POLICY = ModelValidationPolicy(
    writable_fields=products_service.PRODUCT_MUTABLE_FIELDS,
    required_on_create=set(),
)

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
def list_products():
    """
    Query params:
    - search: matches name, sku or barcode (case-insensitive substring)
    - category: exact category
    """
    rows = products_service.list_products(
        search=request.args.get("search"),
        category=request.args.get("category"),
    )
    return {"items": [p.to_dict() for p in rows]}


@products_bp.get("/<int:product_id>")
@require_auth
def get_product(product_id: int):
    p = db.session.get(Product, product_id)
    if not p:
        return {"error": "Product not found"}, 404
    return p.to_dict()


@products_bp.post("")
@require_auth
def create_product_route():
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_CREATE_POLICY, partial=False)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        created = products_service.create_product(patch=patch)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to create product")
        return {"error": "Internal server error"}, 500

    return created.to_dict(), 201


@products_bp.put("/<int:product_id>")
@require_auth
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_UPDATE_POLICY, partial=True)
        enforce_rules_product(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        updated = products_service.update_product(product_id=product_id, patch=patch)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except Exception:
        current_app.logger.exception("Failed to update product")
        return {"error": "Internal server error"}, 500

    if not updated:
        return {"error": "Product not found"}, 404
    return updated.to_dict()


@products_bp.delete("/<int:product_id>")
@require_auth
def delete_product_route(product_id: int):
    """
    Products referenced by transactions are deactivated rather than removed.
    """
    if not products_service.delete_product(product_id=product_id):
        return {"error": "Product not found"}, 404
    return {"message": "Product deleted"}
