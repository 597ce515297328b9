# Overview: Transaction posting; header, items and stock deltas in one atomic unit.

from __future__ import annotations

import uuid

from ..extensions import db
from ..models import Product, Partner, Transaction, TransactionItem
from ..time_utils import utcnow
from ..validation import NotFoundError, ValidationError
from .concurrency import begin_write, increment_column, lock_for_update, run_with_retry
"""
Storebook Posting Invariants (authoritative)

- A posting is all-or-nothing: header, items and every product quantity
  change commit together or not at all.
- total_amount_cents = SUM(price_cents * quantity) over the request items.
  Client totals are never read.
- Each item captures the product's cost_price_cents at posting time.
- Stock deltas are applied by the database as quantity = quantity + delta.
- Negative stock is allowed.
- Items are never updated or deleted. Voiding flips the header status and
  applies the inverse deltas; it does not touch the items.
"""


# Sign applied to the item quantity, per transaction type
STOCK_SIGN = {
    "sale": -1,
    "purchase_return": -1,
    "purchase": 1,
    "sale_return": 1,
    # adjustment items carry their own sign
    "adjustment": 1,
}


def stock_delta(tx_type: str, quantity: int) -> int:
    """
    Signed quantity change a posted item applies to its product.

    payroll and expense (and any other non-stock type) return 0.
    """
    return STOCK_SIGN.get(tx_type, 0) * quantity


def compute_total_cents(items: list[dict]) -> int:
    return sum(item["price_cents"] * item["quantity"] for item in items)


def new_transaction_uid() -> str:
    return uuid.uuid4().hex


def _load_product(product_id: int) -> Product:
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def _post_transaction_inner(
    *,
    tx_type: str,
    user_id: int,
    items: list[dict],
    partner_id: int | None = None,
    notes: str | None = None,
    amount_cents: int | None = None,
) -> Transaction:
    """Core posting logic without locking, retry, or commit.

    Also used by the payroll poster, which posts inside its own unit.
    """
    if partner_id is not None:
        if db.session.query(Partner.id).filter_by(id=partner_id).first() is None:
            raise NotFoundError(f"Partner {partner_id} not found")

    total = amount_cents if amount_cents is not None else compute_total_cents(items)

    tx = Transaction(
        uid=new_transaction_uid(),
        type=tx_type,
        partner_id=partner_id,
        user_id=user_id,
        total_amount_cents=total,
        status="completed",
        notes=notes,
        transaction_date=utcnow(),
    )
    db.session.add(tx)
    db.session.flush()

    for item in items:
        product = _load_product(item["product_id"])

        db.session.add(TransactionItem(
            transaction_id=tx.id,
            product_id=product.id,
            quantity=item["quantity"],
            price_cents=item["price_cents"],
            cost_cents=product.cost_price_cents,
        ))

        delta = stock_delta(tx_type, item["quantity"])
        if delta:
            increment_column(Product, product.id, Product.quantity, delta)

    db.session.flush()
    return tx


def post_transaction(
    *,
    type: str,
    user_id: int,
    items: list[dict] | None = None,
    partner_id: int | None = None,
    notes: str | None = None,
    amount_cents: int | None = None,
) -> Transaction:
    """
    Post a transaction and its stock effects.

    `items` is a list of {product_id, quantity, price_cents} as returned by
    validation.parse_transaction_request. A missing product raises
    NotFoundError and nothing from this call is persisted.
    """
    if user_id is None:
        raise ValidationError("user_id is required")
    items = items or []

    def _op():
        begin_write()
        tx = _post_transaction_inner(
            tx_type=type,
            user_id=user_id,
            items=items,
            partner_id=partner_id,
            notes=notes,
            amount_cents=amount_cents,
        )
        db.session.commit()
        return tx

    return run_with_retry(_op)


def void_transaction(transaction_id: int, *, user_id: int, reason: str) -> Transaction:
    """
    Void a completed transaction and reverse its stock effects.

    WHY not delete: the posted items stay as the historical record; reports
    skip voided headers.
    """
    def _op():
        begin_write()
        tx = lock_for_update(db.session.query(Transaction).filter_by(id=transaction_id)).first()
        if tx is None:
            raise NotFoundError(f"Transaction {transaction_id} not found")
        if tx.status == "voided":
            raise ValidationError("Transaction already voided")
        if tx.type == "payroll":
            raise ValidationError("Payroll transactions cannot be voided")

        for item in tx.items:
            delta = stock_delta(tx.type, item.quantity)
            if delta:
                increment_column(Product, item.product_id, Product.quantity, -delta)

        tx.status = "voided"
        tx.voided_at = utcnow()
        tx.voided_by_user_id = user_id
        tx.void_reason = reason

        db.session.commit()
        return tx

    return run_with_retry(_op)


def get_transaction(transaction_id: int) -> Transaction | None:
    return db.session.get(Transaction, transaction_id)


def list_transactions(
    *,
    type: str | None = None,
    start=None,
    end=None,
    partner_id: int | None = None,
) -> list[Transaction]:
    q = db.session.query(Transaction)
    if type:
        q = q.filter(Transaction.type == type)
    if start is not None:
        q = q.filter(Transaction.transaction_date >= start)
    if end is not None:
        q = q.filter(Transaction.transaction_date <= end)
    if partner_id is not None:
        q = q.filter(Transaction.partner_id == partner_id)
    return q.order_by(Transaction.transaction_date.desc(), Transaction.id.desc()).all()
