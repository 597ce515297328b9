from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Employee(db.Model):
    __tablename__ = "employees"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    full_name = db.Column(db.String(255), nullable=False)
    position = db.Column(db.String(128), nullable=True)
    salary_cents = db.Column(db.Integer, nullable=False, default=0)
    phone = db.Column(db.String(64), nullable=True)
    email = db.Column(db.String(255), nullable=True)
    hire_date = db.Column(db.Date, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "full_name": self.full_name,
            "position": self.position,
            "salary_cents": self.salary_cents,
            "phone": self.phone,
            "email": self.email,
            "hire_date": self.hire_date.isoformat() if self.hire_date else None,
            "is_active": self.is_active,
        }


class Salary(db.Model):
    """
    Salary payment.

    Every salary is mirrored by a `payroll` Transaction (transaction_id) so the
    payment shows up in dashboards and reports next to sales and purchases.
    """
    __tablename__ = "salaries"
    __table_args__ = (
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(db.Integer, db.ForeignKey("employees.id"), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    month = db.Column(db.String(7), nullable=False)  # YYYY-MM
    payment_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    notes = db.Column(db.Text, nullable=True)
    transaction_id = db.Column(db.Integer, db.ForeignKey("transactions.id"), nullable=True)

    employee = db.relationship("Employee", backref=db.backref("salaries", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "amount_cents": self.amount_cents,
            "month": self.month,
            "payment_date": to_utc_z(self.payment_date),
            "notes": self.notes,
            "transaction_id": self.transaction_id,
        }
