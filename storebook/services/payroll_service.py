# Overview: Salary payments mirrored as payroll transactions.

from __future__ import annotations

from ..extensions import db
from ..models import Employee, Salary
from ..validation import NotFoundError, ValidationError
from .concurrency import begin_write, run_with_retry
from .posting_service import _post_transaction_inner


def post_salary(
    *,
    employee_id: int,
    amount_cents: int,
    month: str,
    user_id: int,
    notes: str | None = None,
) -> Salary:
    """
    Record a salary payment.

    The Salary row and its companion `payroll` Transaction (total =
    amount_cents, no partner, no items) are written in one unit. The
    transaction is attributed to the caller; there is no system default user.
    """
    if user_id is None:
        raise ValidationError("user_id is required")

    def _op():
        begin_write()
        employee = db.session.query(Employee).filter_by(id=employee_id).first()
        if employee is None:
            raise NotFoundError(f"Employee {employee_id} not found")

        tx = _post_transaction_inner(
            tx_type="payroll",
            user_id=user_id,
            items=[],
            notes=f"Salary payment for month {month}",
            amount_cents=amount_cents,
        )

        salary = Salary(
            employee_id=employee.id,
            amount_cents=amount_cents,
            month=month,
            notes=notes,
            transaction_id=tx.id,
        )
        db.session.add(salary)
        db.session.commit()
        return salary

    return run_with_retry(_op)


def list_salaries(employee_id: int | None = None) -> list[Salary]:
    q = db.session.query(Salary)
    if employee_id is not None:
        q = q.filter(Salary.employee_id == employee_id)
    return q.order_by(Salary.payment_date.desc(), Salary.id.desc()).all()


def list_employees() -> list[Employee]:
    return db.session.query(Employee).order_by(Employee.full_name.asc()).all()


def create_employee(*, patch: dict) -> Employee:
    employee = Employee(**patch)
    db.session.add(employee)
    db.session.commit()
    return employee
