# Overview: Manual double-entry journal postings and account balance maintenance.

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import Account, JournalEntry, JournalItem
from ..time_utils import utcnow
from ..validation import ConflictError, ImbalanceError, NotFoundError, ValidationError
from .concurrency import begin_write, increment_column, lock_for_update, run_with_retry


def check_balance(items: list[dict]) -> int:
    """
    Pure pre-commit check over journal lines.

    Every line moves money on exactly one side, amounts are non-negative,
    SUM(debit) == SUM(credit) and the sum is positive. Returns the balanced
    total in cents; raises ImbalanceError otherwise.
    """
    if not items:
        raise ImbalanceError("Journal entry needs at least one line")

    total_debit = 0
    total_credit = 0
    for i, item in enumerate(items):
        debit = item.get("debit_cents", 0)
        credit = item.get("credit_cents", 0)
        if debit < 0 or credit < 0:
            raise ImbalanceError(f"items[{i}] debit and credit must be >= 0")
        if debit and credit:
            raise ImbalanceError(f"items[{i}] cannot have both a debit and a credit")
        if not debit and not credit:
            raise ImbalanceError(f"items[{i}] must have a debit or a credit")
        total_debit += debit
        total_credit += credit

    if total_debit != total_credit:
        raise ImbalanceError(
            f"Debits ({total_debit}) must equal credits ({total_credit})"
        )
    if total_debit <= 0:
        raise ImbalanceError("Journal entry total must be > 0")
    return total_debit


def post_journal_entry(
    *,
    description: str,
    items: list[dict],
    reference: str | None = None,
    entry_date: datetime | None = None,
) -> JournalEntry:
    """
    Post a journal entry and update each referenced account's balance.

    The balance check runs before any write. An unknown account aborts the
    whole entry; no balance changes are kept.
    """
    if not description:
        raise ValidationError("description is required")
    check_balance(items)

    def _op():
        begin_write()
        entry = JournalEntry(
            description=description,
            reference=reference,
            entry_date=entry_date or utcnow(),
        )
        db.session.add(entry)
        db.session.flush()

        for item in items:
            account = lock_for_update(
                db.session.query(Account).filter_by(id=item["account_id"])
            ).first()
            if account is None:
                raise NotFoundError(f"Account {item['account_id']} not found")

            db.session.add(JournalItem(
                journal_entry_id=entry.id,
                account_id=account.id,
                debit_cents=item.get("debit_cents", 0),
                credit_cents=item.get("credit_cents", 0),
            ))
            increment_column(
                Account,
                account.id,
                Account.balance_cents,
                item.get("debit_cents", 0) - item.get("credit_cents", 0),
            )

        db.session.commit()
        return entry

    return run_with_retry(_op)


def list_journal_entries() -> list[JournalEntry]:
    return (
        db.session.query(JournalEntry)
        .order_by(JournalEntry.entry_date.desc(), JournalEntry.id.desc())
        .all()
    )


def list_accounts() -> list[Account]:
    return db.session.query(Account).order_by(Account.code.asc()).all()


def create_account(*, patch: dict) -> Account:
    """Create an account from a validated patch. Account codes are unique."""
    existing = db.session.query(Account).filter_by(code=patch["code"]).first()
    if existing:
        raise ConflictError(f"Account code {patch['code']} already exists")

    parent_id = patch.get("parent_account_id")
    if parent_id is not None and db.session.get(Account, parent_id) is None:
        raise NotFoundError(f"Account {parent_id} not found")

    account = Account(
        code=patch["code"],
        name=patch["name"],
        type=patch["type"],
        parent_account_id=parent_id,
        balance_cents=0,
    )
    db.session.add(account)
    db.session.commit()
    return account
