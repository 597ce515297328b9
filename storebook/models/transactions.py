from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

TRANSACTION_TYPES = (
    "sale",
    "purchase",
    "sale_return",
    "purchase_return",
    "adjustment",
    "payroll",
    "expense",
)
TRANSACTION_STATUSES = ("completed", "voided")


class Transaction(db.Model):
    """
    Posted business transaction (header).

    WHY uid: ids are instance-local. `uid` is assigned once at posting time and
    travels with the row during sync, so the same transaction is recognised on
    every instance instead of being inserted again.

    Items are immutable once posted. The only later change is the
    completed -> voided status transition.
    """
    __tablename__ = "transactions"
    __table_args__ = (
        db.Index("ix_transactions_type_date", "type", "transaction_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    uid = db.Column(db.String(64), nullable=False, unique=True)

    type = db.Column(db.String(32), nullable=False, index=True)
    partner_id = db.Column(db.Integer, db.ForeignKey("partners.id"), nullable=True, index=True)
    user_id = db.Column(db.Integer, nullable=False)

    # Server-computed, never taken from the client
    total_amount_cents = db.Column(db.Integer, nullable=False)

    status = db.Column(db.String(16), nullable=False, default="completed", index=True)
    notes = db.Column(db.Text, nullable=True)

    transaction_date = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        index=True,
    )

    # Void audit trail
    voided_at = db.Column(db.DateTime(timezone=True), nullable=True)
    voided_by_user_id = db.Column(db.Integer, nullable=True)
    void_reason = db.Column(db.String(255), nullable=True)

    partner = db.relationship("Partner", backref=db.backref("transactions", lazy=True))
    items = db.relationship(
        "TransactionItem",
        backref="transaction",
        lazy=True,
        order_by="TransactionItem.id",
    )

    def __repr__(self) -> str:
        return f"<Transaction id={self.id} type={self.type} total={self.total_amount_cents} status={self.status}>"

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "uid": self.uid,
            "type": self.type,
            "partner_id": self.partner_id,
            "user_id": self.user_id,
            "total_amount_cents": self.total_amount_cents,
            "status": self.status,
            "notes": self.notes,
            "transaction_date": to_utc_z(self.transaction_date),
            "voided_at": to_utc_z(self.voided_at) if self.voided_at else None,
            "voided_by_user_id": self.voided_by_user_id,
            "void_reason": self.void_reason,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class TransactionItem(db.Model):
    """
    Line of a transaction.

    price_cents is the unit price applied in this transaction; cost_cents is the
    product cost captured at posting time so later cost changes do not rewrite
    historical profit. quantity is positive except for adjustments, where its
    sign is the stock delta.
    """
    __tablename__ = "transaction_items"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)
    quantity = db.Column(db.Integer, nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    cost_cents = db.Column(db.Integer, nullable=False)

    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "transaction_id": self.transaction_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "price_cents": self.price_cents,
            "cost_cents": self.cost_cents,
        }
