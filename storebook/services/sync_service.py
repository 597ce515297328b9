# Overview: Sync reconciler; merges a peer's snapshot into this instance and returns ours.

from __future__ import annotations

import hashlib
import json
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..extensions import db
from ..models import Partner, Product, Transaction, TransactionItem, TRANSACTION_STATUSES, TRANSACTION_TYPES
from ..time_utils import parse_iso_datetime, utcnow
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    coerce_int,
    validate_payload,
)
"""
Storebook Sync Invariants (authoritative)

Merge procedure, per collection, in the order products -> partners -> transactions:
- Products and partners are matched by `name` (ids are instance-local). A
  match is replaced by the incoming row (row-level last writer wins, no
  timestamps): synced fields the record omits fall back to their column
  defaults. No match inserts a new row with a locally assigned id.
- Transactions are matched by `uid`. Unknown uids are inserted together with
  their items; known uids are left alone except that a voided status is
  propagated (completed -> voided only). Records without a uid get a
  deterministic content hash as uid, so repeated syncs never duplicate them.
- Synced transactions never move stock; product quantities travel with the
  product rows.
- Every row commits on its own. There is no cross-row or cross-collection
  transaction, so an interrupted sync leaves earlier rows applied. Rerunning
  is safe because every step above is idempotent.
- A row that cannot be applied (unique constraint, unknown product, bad
  field, any other database error) is rolled back alone and reported in
  `conflicts`. Transaction items must carry their captured `cost_cents`.
"""

logger = logging.getLogger(__name__)

SYNC_COLLECTIONS = ("products", "partners", "transactions")

PRODUCT_SYNC_POLICY = ModelValidationPolicy(
    writable_fields={
        "name", "sku", "barcode", "description", "quantity", "cost_price_cents",
        "selling_price_cents", "min_stock_level", "category", "is_active",
    },
    required_on_create={"name"},
)

PARTNER_SYNC_POLICY = ModelValidationPolicy(
    writable_fields={"name", "type", "phone", "email", "address", "is_active"},
    required_on_create={"name", "type"},
)


def _transaction_to_sync_dict(tx: Transaction, product_names: dict[int, str]) -> dict:
    data = tx.to_dict()
    data["partner_name"] = tx.partner.name if tx.partner else None
    data["items"] = [
        {
            "product_name": product_names.get(item.product_id),
            "quantity": item.quantity,
            "price_cents": item.price_cents,
            "cost_cents": item.cost_cents,
        }
        for item in tx.items
    ]
    return data


def snapshot() -> dict:
    """Full current content of the synced tables, in the wire shape reconcile() accepts."""
    products = db.session.query(Product).order_by(Product.id.asc()).all()
    partners = db.session.query(Partner).order_by(Partner.id.asc()).all()
    transactions = db.session.query(Transaction).order_by(Transaction.id.asc()).all()

    product_names = {p.id: p.name for p in products}
    return {
        "products": [p.to_dict() for p in products],
        "partners": [p.to_dict() for p in partners],
        "transactions": [_transaction_to_sync_dict(tx, product_names) for tx in transactions],
    }


def content_uid(record: dict) -> str:
    """
    Deterministic identity for a transaction record that arrived without a uid.

    Hashes the fields that describe the business event, so the same record
    sent twice maps to the same uid.
    """
    basis = {
        "type": record.get("type"),
        "partner_name": record.get("partner_name"),
        "user_id": record.get("user_id"),
        "total_amount_cents": record.get("total_amount_cents"),
        "transaction_date": record.get("transaction_date"),
        "items": [
            {
                "product_name": item.get("product_name"),
                "quantity": item.get("quantity"),
                "price_cents": item.get("price_cents"),
            }
            for item in (record.get("items") or [])
            if isinstance(item, dict)
        ],
    }
    encoded = json.dumps(basis, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha256(encoded.encode("utf-8")).hexdigest()


def _known_fields(record: dict, policy: ModelValidationPolicy) -> dict:
    # Peers send whole rows (id, created_at, ...); only synced fields are applied
    return {k: v for k, v in record.items() if k in policy.writable_fields}


def _record_name(record: dict) -> str:
    name = record.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("name is required")
    return name.strip()


def _column_default(column):
    if column.default is not None and column.default.is_scalar:
        return column.default.arg
    return None


def _upsert_by_name(model, record: dict, policy: ModelValidationPolicy) -> str:
    name = _record_name(record)
    existing = (
        db.session.query(model)
        .filter(model.name == name)
        .order_by(model.id.asc())
        .first()
    )
    patch = validate_payload(
        model=model,
        payload=_known_fields(record, policy),
        policy=policy,
        partial=False,
    )
    patch["name"] = name

    if existing is not None:
        columns = model.__mapper__.columns
        for k in policy.writable_fields:
            setattr(existing, k, patch[k] if k in patch else _column_default(columns[k]))
        db.session.flush()
        return "updated"

    row = model(**patch)
    db.session.add(row)
    db.session.flush()
    return "inserted"


def _upsert_product(record: dict) -> str:
    for key in ("sku", "barcode"):
        if record.get(key) == "":
            record = {**record, key: None}
    return _upsert_by_name(Product, record, PRODUCT_SYNC_POLICY)


def _upsert_partner(record: dict) -> str:
    partner_type = record.get("type")
    if partner_type is not None and partner_type not in ("customer", "supplier"):
        raise ValidationError("type must be customer or supplier")
    return _upsert_by_name(Partner, record, PARTNER_SYNC_POLICY)


def _parse_record_datetime(record: dict, key: str):
    raw = record.get(key)
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise ValidationError(f"{key} must be an ISO-8601 datetime")
    try:
        return parse_iso_datetime(raw)
    except ValueError:
        raise ValidationError(f"{key} must be an ISO-8601 datetime")


def _void_reason(record: dict) -> str | None:
    reason = record.get("void_reason")
    if reason is None:
        return None
    if not isinstance(reason, str) or len(reason) > 255:
        raise ValidationError("void_reason must be a string of at most 255 characters")
    return reason


def _propagate_void(existing: Transaction, record: dict) -> str:
    if record.get("status") == "voided" and existing.status != "voided":
        existing.status = "voided"
        existing.voided_at = _parse_record_datetime(record, "voided_at") or utcnow()
        if record.get("voided_by_user_id") is not None:
            existing.voided_by_user_id = coerce_int("voided_by_user_id", record["voided_by_user_id"])
        existing.void_reason = _void_reason(record)
        db.session.flush()
        return "voided"
    return "unchanged"


def _upsert_transaction(record: dict) -> str:
    uid = record.get("uid") or content_uid(record)
    if not isinstance(uid, str) or len(uid) > 64:
        raise ValidationError("uid must be a string of at most 64 characters")

    existing = db.session.query(Transaction).filter_by(uid=uid).first()
    if existing is not None:
        return _propagate_void(existing, record)

    tx_type = record.get("type")
    if tx_type not in TRANSACTION_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(TRANSACTION_TYPES)}")
    status = record.get("status") or "completed"
    if status not in TRANSACTION_STATUSES:
        raise ValidationError(f"status must be one of: {', '.join(TRANSACTION_STATUSES)}")
    if record.get("user_id") is None:
        raise ValidationError("user_id is required")
    if record.get("total_amount_cents") is None:
        raise ValidationError("total_amount_cents is required")

    partner_id = None
    partner_name = record.get("partner_name")
    if partner_name:
        partner = (
            db.session.query(Partner)
            .filter(Partner.name == partner_name)
            .order_by(Partner.id.asc())
            .first()
        )
        if partner is None:
            raise NotFoundError(f"Partner {partner_name!r} not found")
        partner_id = partner.id

    tx = Transaction(
        uid=uid,
        type=tx_type,
        partner_id=partner_id,
        user_id=coerce_int("user_id", record["user_id"]),
        total_amount_cents=coerce_int("total_amount_cents", record["total_amount_cents"]),
        status=status,
        notes=record.get("notes"),
        transaction_date=_parse_record_datetime(record, "transaction_date") or utcnow(),
        voided_at=_parse_record_datetime(record, "voided_at"),
        void_reason=_void_reason(record),
    )
    if record.get("voided_by_user_id") is not None:
        tx.voided_by_user_id = coerce_int("voided_by_user_id", record["voided_by_user_id"])
    db.session.add(tx)
    db.session.flush()

    for i, item in enumerate(record.get("items") or []):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{i}] must be an object")
        product_name = item.get("product_name")
        product = (
            db.session.query(Product)
            .filter(Product.name == product_name)
            .order_by(Product.id.asc())
            .first()
        )
        if product is None:
            raise NotFoundError(f"Product {product_name!r} not found")
        if item.get("cost_cents") is None:
            raise ValidationError(f"items[{i}].cost_cents is required")
        db.session.add(TransactionItem(
            transaction_id=tx.id,
            product_id=product.id,
            quantity=coerce_int(f"items[{i}].quantity", item.get("quantity")),
            price_cents=coerce_int(f"items[{i}].price_cents", item.get("price_cents")),
            cost_cents=coerce_int(f"items[{i}].cost_cents", item["cost_cents"]),
        ))
    db.session.flush()
    return "inserted"


_UPSERTS = {
    "products": _upsert_product,
    "partners": _upsert_partner,
    "transactions": _upsert_transaction,
}


def _record_label(collection: str, record: dict) -> str | None:
    if collection == "transactions":
        return record.get("uid")
    return record.get("name")


def validate_snapshot(payload) -> dict:
    """
    Check the envelope before anything is written: an object whose
    products/partners/transactions keys, when present, are lists of objects.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    cleaned = {}
    for collection in SYNC_COLLECTIONS:
        rows = payload.get(collection)
        if rows is None:
            rows = []
        if not isinstance(rows, list):
            raise ValidationError(f"{collection} must be a list")
        for i, row in enumerate(rows):
            if not isinstance(row, dict):
                raise ValidationError(f"{collection}[{i}] must be an object")
        cleaned[collection] = rows
    return cleaned


def reconcile(payload) -> dict:
    """
    Merge a peer snapshot into this instance and return our resulting state.

    Returns {"received_count", "applied", "conflicts", "current_state"}.
    """
    incoming = validate_snapshot(payload)

    received_count = {c: len(incoming[c]) for c in SYNC_COLLECTIONS}
    applied = {c: {} for c in SYNC_COLLECTIONS}
    conflicts: list[dict] = []

    for collection in SYNC_COLLECTIONS:
        upsert = _UPSERTS[collection]
        for index, record in enumerate(incoming[collection]):
            try:
                outcome = upsert(record)
                db.session.commit()
            except IntegrityError:
                db.session.rollback()
                error = "unique constraint violated"
            except (ValidationError, NotFoundError) as exc:
                db.session.rollback()
                error = str(exc)
            except SQLAlchemyError as exc:
                db.session.rollback()
                error = f"database error: {exc.__class__.__name__}"
            else:
                applied[collection][outcome] = applied[collection].get(outcome, 0) + 1
                continue

            label = _record_label(collection, record)
            logger.warning("Sync skipped %s[%d] (%s): %s", collection, index, label, error)
            conflicts.append({
                "collection": collection,
                "index": index,
                "key": label,
                "error": error,
            })

    logger.info(
        "Sync reconciled products=%d partners=%d transactions=%d conflicts=%d",
        received_count["products"],
        received_count["partners"],
        received_count["transactions"],
        len(conflicts),
    )

    return {
        "received_count": received_count,
        "applied": applied,
        "conflicts": conflicts,
        "current_state": snapshot(),
    }
