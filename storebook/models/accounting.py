from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

ACCOUNT_TYPES = ("asset", "liability", "equity", "revenue", "expense")


class Account(db.Model):
    """
    Chart-of-accounts entry.

    balance_cents is a running total of (debit - credit) over the account's
    journal items. It is applied incrementally when an entry is posted and is
    never recomputed from scratch in normal operation.
    """
    __tablename__ = "accounts"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    code = db.Column(db.String(32), nullable=False, unique=True)
    name = db.Column(db.String(255), nullable=False)
    type = db.Column(db.String(16), nullable=False)
    # Hierarchy is informational only
    parent_account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=True)
    balance_cents = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "code": self.code,
            "name": self.name,
            "type": self.type,
            "parent_account_id": self.parent_account_id,
            "balance_cents": self.balance_cents,
        }


class JournalEntry(db.Model):
    __tablename__ = "journal_entries"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    description = db.Column(db.Text, nullable=False)
    entry_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    reference = db.Column(db.String(128), nullable=True)

    items = db.relationship(
        "JournalItem",
        backref="journal_entry",
        lazy=True,
        order_by="JournalItem.id",
    )

    def to_dict(self, include_items: bool = False) -> dict:
        data = {
            "id": self.id,
            "description": self.description,
            "entry_date": to_utc_z(self.entry_date),
            "reference": self.reference,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.items]
        return data


class JournalItem(db.Model):
    __tablename__ = "journal_items"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    journal_entry_id = db.Column(db.Integer, db.ForeignKey("journal_entries.id"), nullable=False, index=True)
    account_id = db.Column(db.Integer, db.ForeignKey("accounts.id"), nullable=False, index=True)
    debit_cents = db.Column(db.Integer, nullable=False, default=0)
    credit_cents = db.Column(db.Integer, nullable=False, default=0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "journal_entry_id": self.journal_entry_id,
            "account_id": self.account_id,
            "debit_cents": self.debit_cents,
            "credit_cents": self.credit_cents,
        }
