import pytest

from storebook.extensions import db
from storebook.models import Account, JournalEntry, JournalItem
from storebook.services.journal_service import check_balance, create_account, post_journal_entry
from storebook.validation import ConflictError, ImbalanceError, NotFoundError


def _balance(account_id: int) -> int:
    return db.session.get(Account, account_id).balance_cents


class TestCheckBalance:
    def test_balanced_returns_total(self):
        assert check_balance([
            {"account_id": 1, "debit_cents": 500, "credit_cents": 0},
            {"account_id": 2, "debit_cents": 0, "credit_cents": 500},
        ]) == 500

    @pytest.mark.parametrize(
        "items",
        [
            # debit 100, credit 90
            [{"debit_cents": 100, "credit_cents": 0}, {"debit_cents": 0, "credit_cents": 90}],
            # both sides on one line
            [{"debit_cents": 100, "credit_cents": 100}],
            # neither side
            [{"debit_cents": 0, "credit_cents": 0}],
            # negative amount
            [{"debit_cents": -100, "credit_cents": 0}, {"debit_cents": 0, "credit_cents": -100}],
            [],
        ],
    )
    def test_rejects(self, items):
        with pytest.raises(ImbalanceError):
            check_balance(items)


class TestPostJournalEntry:
    def test_balances_move_by_debit_minus_credit(self, accounts):
        cash, revenue = accounts["cash"], accounts["revenue"]
        entry = post_journal_entry(
            description="Cash sale",
            reference="R-1",
            items=[
                {"account_id": cash.id, "debit_cents": 14000, "credit_cents": 0},
                {"account_id": revenue.id, "debit_cents": 0, "credit_cents": 14000},
            ],
        )
        assert entry.id is not None
        assert len(entry.items) == 2
        assert _balance(cash.id) == 14000
        assert _balance(revenue.id) == -14000

    def test_imbalance_changes_nothing(self, accounts):
        cash, revenue = accounts["cash"], accounts["revenue"]
        with pytest.raises(ImbalanceError):
            post_journal_entry(
                description="Broken",
                items=[
                    {"account_id": cash.id, "debit_cents": 100, "credit_cents": 0},
                    {"account_id": revenue.id, "debit_cents": 0, "credit_cents": 90},
                ],
            )
        assert db.session.query(JournalEntry).count() == 0
        assert _balance(cash.id) == 0
        assert _balance(revenue.id) == 0

    def test_unknown_account_aborts_entry(self, accounts):
        cash = accounts["cash"]
        with pytest.raises(NotFoundError):
            post_journal_entry(
                description="Orphan",
                items=[
                    {"account_id": cash.id, "debit_cents": 100, "credit_cents": 0},
                    {"account_id": 9999, "debit_cents": 0, "credit_cents": 100},
                ],
            )
        assert db.session.query(JournalEntry).count() == 0
        assert db.session.query(JournalItem).count() == 0
        assert _balance(cash.id) == 0


class TestAccounts:
    def test_duplicate_code_conflicts(self, accounts):
        with pytest.raises(ConflictError):
            create_account(patch={"code": "1000", "name": "Petty Cash", "type": "asset"})

    def test_unknown_parent(self, db_session):
        with pytest.raises(NotFoundError):
            create_account(patch={"code": "1100", "name": "Bank", "type": "asset", "parent_account_id": 77})
