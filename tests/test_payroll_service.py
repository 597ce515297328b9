import pytest

from storebook.extensions import db
from storebook.models import Salary, Transaction
from storebook.services.payroll_service import post_salary
from storebook.validation import NotFoundError


def test_salary_creates_payroll_transaction(user, employee):
    salary = post_salary(employee_id=employee.id, amount_cents=250000, month="2024-03", user_id=user.id)

    tx = db.session.get(Transaction, salary.transaction_id)
    assert tx.type == "payroll"
    assert tx.total_amount_cents == 250000
    assert tx.partner_id is None
    assert tx.user_id == user.id
    assert tx.notes == "Salary payment for month 2024-03"
    assert tx.items == []
    assert salary.month == "2024-03"


def test_unknown_employee_writes_nothing(user, db_session):
    with pytest.raises(NotFoundError):
        post_salary(employee_id=404, amount_cents=1000, month="2024-03", user_id=user.id)
    assert db.session.query(Salary).count() == 0
    assert db.session.query(Transaction).count() == 0


def test_payroll_cannot_be_voided(user, employee):
    from storebook.services.posting_service import void_transaction
    from storebook.validation import ValidationError

    salary = post_salary(employee_id=employee.id, amount_cents=1000, month="2024-04", user_id=user.id)
    with pytest.raises(ValidationError):
        void_transaction(salary.transaction_id, user_id=user.id, reason="oops")
