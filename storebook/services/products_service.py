# storebook/services/products_service.py
"""
Product and partner master data.

Products: sku and barcode are unique when present. Stock (`quantity`) can be
set on create, but afterwards it only moves through postings and sync.
"""
from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Partner, Product
from ..validation import ConflictError

PRODUCT_MUTABLE_FIELDS = {
    "sku", "barcode", "name", "description", "cost_price_cents",
    "selling_price_cents", "min_stock_level", "category", "is_active",
}
PARTNER_MUTABLE_FIELDS = {"name", "type", "phone", "email", "address", "is_active"}


def _apply_patch(obj, patch: dict, allowed: set[str]) -> None:
    for k, v in patch.items():
        if k not in allowed:
            continue
        setattr(obj, k, v)


def _ensure_unique_identifiers(patch: dict, exclude_id: int | None = None) -> None:
    for key in ("sku", "barcode"):
        value = patch.get(key)
        if not value:
            continue
        q = db.session.query(Product).filter(getattr(Product, key) == value)
        if exclude_id is not None:
            q = q.filter(Product.id != exclude_id)
        if q.first() is not None:
            raise ConflictError(f"{key.upper()} {value} already exists.")


def list_products(search: str | None = None, category: str | None = None) -> list[Product]:
    q = db.session.query(Product)
    if search:
        pattern = f"%{search}%"
        q = q.filter(or_(
            Product.name.ilike(pattern),
            Product.sku.ilike(pattern),
            Product.barcode.ilike(pattern),
        ))
    if category:
        q = q.filter(Product.category == category)
    return q.order_by(Product.name.asc(), Product.id.asc()).all()


def create_product(*, patch: dict) -> Product:
    """
    Create product using a validated patch dict.

    Raises ConflictError if the SKU or barcode is taken.
    """
    _ensure_unique_identifiers(patch)

    p = Product(quantity=patch.get("quantity", 0))
    _apply_patch(p, patch, PRODUCT_MUTABLE_FIELDS)
    db.session.add(p)
    db.session.commit()
    return p


def update_product(*, product_id: int, patch: dict) -> Product | None:
    p = db.session.get(Product, product_id)
    if p is None:
        return None
    _ensure_unique_identifiers(patch, exclude_id=product_id)
    _apply_patch(p, patch, PRODUCT_MUTABLE_FIELDS)
    db.session.commit()
    return p


def delete_product(*, product_id: int) -> bool:
    """
    Delete a product that was never posted; products with history are
    deactivated instead so past transaction items keep their reference.
    """
    from ..models import TransactionItem

    p = db.session.get(Product, product_id)
    if p is None:
        return False
    used = db.session.query(TransactionItem.id).filter_by(product_id=product_id).first()
    if used:
        p.is_active = False
    else:
        db.session.delete(p)
    db.session.commit()
    return True


def list_partners(type: str | None = None, search: str | None = None) -> list[Partner]:
    q = db.session.query(Partner)
    if type:
        q = q.filter(Partner.type == type)
    if search:
        q = q.filter(Partner.name.ilike(f"%{search}%"))
    return q.order_by(Partner.name.asc(), Partner.id.asc()).all()


def create_partner(*, patch: dict) -> Partner:
    partner = Partner()
    _apply_patch(partner, patch, PARTNER_MUTABLE_FIELDS)
    db.session.add(partner)
    db.session.commit()
    return partner


def update_partner(*, partner_id: int, patch: dict) -> Partner | None:
    partner = db.session.get(Partner, partner_id)
    if partner is None:
        return None
    _apply_patch(partner, patch, PARTNER_MUTABLE_FIELDS)
    db.session.commit()
    return partner
