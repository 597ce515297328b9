# Overview: Flask API routes for employees and salary payments.

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth
from ..models import Employee
from ..services import payroll_service
from ..validation import (
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_employee,
    parse_salary_request,
    validate_payload,
)

EMPLOYEE_POLICY = ModelValidationPolicy(
    writable_fields={"full_name", "position", "salary_cents", "phone", "email", "hire_date", "is_active"},
    required_on_create={"full_name"},
)

employees_bp = Blueprint("employees", __name__, url_prefix="/api/employees")
salaries_bp = Blueprint("salaries", __name__, url_prefix="/api/salaries")


@employees_bp.get("")
@require_auth
def list_employees_route():
    return {"items": [e.to_dict() for e in payroll_service.list_employees()]}


@employees_bp.post("")
@require_auth
def create_employee_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Employee, payload=payload, policy=EMPLOYEE_POLICY, partial=False)
        enforce_rules_employee(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        employee = payroll_service.create_employee(patch=patch)
    except Exception:
        current_app.logger.exception("Failed to create employee")
        return {"error": "Internal server error"}, 500
    return employee.to_dict(), 201


@salaries_bp.get("")
@require_auth
def list_salaries_route():
    rows = payroll_service.list_salaries(employee_id=request.args.get("employee_id", type=int))
    return {"items": [s.to_dict() for s in rows]}


@salaries_bp.post("")
@require_auth
def post_salary_route():
    """
    Pay a salary. Creates the Salary row and its payroll transaction together.
    """
    try:
        req = parse_salary_request(request.get_json(silent=True))
        salary = payroll_service.post_salary(
            employee_id=req["employee_id"],
            amount_cents=req["amount_cents"],
            month=req["month"],
            user_id=g.current_user.id,
            notes=req["notes"],
        )
    except (ValidationError, NotFoundError) as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to post salary")
        return {"error": "Internal server error"}, 500

    return salary.to_dict(), 201
