# Overview: Service-layer operations for reporting; read-only dashboard aggregates.

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Product, Transaction, TransactionItem


RECENT_LIMIT = 5
TOP_SELLING_LIMIT = 5

# Dashboard key -> transaction type
BREAKDOWN_TYPES = {
    "sales": "sale",
    "purchases": "purchase",
    "sale_returns": "sale_return",
    "purchase_returns": "purchase_return",
    "adjustments": "adjustment",
    "expenses": "expense",
    "payroll": "payroll",
}


def _completed():
    return Transaction.status == "completed"


def _totals_by_type() -> dict[str, int]:
    rows = (
        db.session.query(
            Transaction.type,
            func.coalesce(func.sum(Transaction.total_amount_cents), 0),
        )
        .filter(_completed())
        .group_by(Transaction.type)
        .all()
    )
    return {tx_type: int(total) for tx_type, total in rows}


def _total_profits_cents() -> int:
    profit = (
        db.session.query(
            func.coalesce(
                func.sum((TransactionItem.price_cents - TransactionItem.cost_cents) * TransactionItem.quantity),
                0,
            )
        )
        .join(Transaction, Transaction.id == TransactionItem.transaction_id)
        .filter(Transaction.type == "sale", _completed())
        .scalar()
    )
    return int(profit or 0)


def _low_stock_products() -> list[Product]:
    return (
        db.session.query(Product)
        .filter(
            Product.min_stock_level.isnot(None),
            Product.quantity <= Product.min_stock_level,
        )
        .order_by(Product.quantity.asc(), Product.id.asc())
        .all()
    )


def _recent_transactions() -> list[dict]:
    rows = (
        db.session.query(Transaction)
        .filter(_completed())
        .order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
        .limit(RECENT_LIMIT)
        .all()
    )
    out = []
    for tx in rows:
        data = tx.to_dict()
        data["partner_name"] = tx.partner.name if tx.partner else None
        out.append(data)
    return out


def _top_selling_products() -> list[dict]:
    sold = func.sum(TransactionItem.quantity).label("quantity")
    rows = (
        db.session.query(Product.id, Product.name, sold)
        .join(TransactionItem, TransactionItem.product_id == Product.id)
        .join(Transaction, Transaction.id == TransactionItem.transaction_id)
        .filter(Transaction.type == "sale", _completed())
        .group_by(Product.id, Product.name)
        .order_by(sold.desc(), Product.id.asc())
        .limit(TOP_SELLING_LIMIT)
        .all()
    )
    return [
        {"product_id": product_id, "name": name, "quantity": int(quantity)}
        for product_id, name, quantity in rows
    ]


def dashboard() -> dict:
    """
    Store overview computed from the ledger on every call (no caching).

    Only completed transactions count; voided ones are ignored everywhere.
    Profit is sum((price - captured cost) * quantity) over sale items.
    """
    totals = _totals_by_type()
    low_stock = _low_stock_products()

    return {
        "total_sales_cents": totals.get("sale", 0),
        "total_profits_cents": _total_profits_cents(),
        "low_stock_count": len(low_stock),
        "low_stock_products": [p.to_dict() for p in low_stock],
        "recent_transactions": _recent_transactions(),
        "top_selling_products": _top_selling_products(),
        "breakdown": {key: totals.get(tx_type, 0) for key, tx_type in BREAKDOWN_TYPES.items()},
    }
