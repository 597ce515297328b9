from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from sqlalchemy import Boolean, Date, DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .time_utils import is_valid_month, parse_iso_date, parse_iso_datetime


# Maximum amount: $9,999,999.99 (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999

# Per-item quantity cap for postings
MAX_ITEM_QUANTITY = 1_000_000

# Range of a 32-bit Integer column
MIN_DB_INT = -(2 ** 31)
MAX_DB_INT = 2 ** 31 - 1

# Transaction types that move stock by a positive item quantity
STOCK_TYPES = ("sale", "purchase", "sale_return", "purchase_return")
CLIENT_POSTABLE_TYPES = STOCK_TYPES + ("adjustment", "expense")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


class NotFoundError(ValueError):
    """Referenced product/account/employee/partner does not exist."""


class ImbalanceError(ValidationError):
    """Journal debits and credits do not balance."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _check_db_range(key: str, value: int) -> int:
    if value < MIN_DB_INT or value > MAX_DB_INT:
        raise ValidationError(f"{key} is out of range")
    return value


def coerce_int(key: str, value: Any) -> int:
    """
    Strict integer coercion: rejects bools, floats and scientific notation.

    Values outside the Integer column range are rejected here so they never
    reach the database driver.
    """
    if isinstance(value, int) and not isinstance(value, bool):
        return _check_db_range(key, value)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            parsed = int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
        return _check_db_range(key, parsed)
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    raise ValidationError(f"{key} must be an integer")


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    if isinstance(coltype, Integer):
        return coerce_int(col.key, value)

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        raise ValidationError(f"{col.key} must be a boolean")

    if isinstance(coltype, DateTime):
        if isinstance(value, datetime):
            return value
        if isinstance(value, str):
            try:
                dt = parse_iso_datetime(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            if dt is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 datetime")
            return dt
        raise ValidationError(f"{col.key} must be a datetime")

    if isinstance(coltype, Date):
        if isinstance(value, date):
            return value
        if isinstance(value, str):
            try:
                d = parse_iso_date(value)
            except ValueError:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            if d is None:
                raise ValidationError(f"{col.key} must be an ISO-8601 date")
            return d
        raise ValidationError(f"{col.key} must be a date")

    if isinstance(coltype, (String, Text)):
        if isinstance(value, (dict, list)):
            raise ValidationError(f"{col.key} must be a string")
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = sorted(f for f in required if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def _check_amount(key: str, value: int, *, allow_zero: bool = True) -> None:
    if value < 0 or (value == 0 and not allow_zero):
        raise ValidationError(f"{key} must be {'>=' if allow_zero else '>'} 0")
    if value > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{key} cannot exceed {MAX_AMOUNT_CENTS}")


def enforce_rules_product(patch: dict) -> None:
    for key in ("cost_price_cents", "selling_price_cents"):
        if patch.get(key) is not None:
            _check_amount(key, patch[key])
    if patch.get("min_stock_level") is not None and patch["min_stock_level"] < 0:
        raise ValidationError("min_stock_level must be >= 0")
    # Blank identifiers become NULL so the unique constraints ignore them
    for key in ("sku", "barcode"):
        if key in patch and patch[key] == "":
            patch[key] = None


def enforce_rules_partner(patch: dict) -> None:
    if "type" in patch and patch["type"] not in ("customer", "supplier"):
        raise ValidationError("type must be customer or supplier")


def enforce_rules_account(patch: dict) -> None:
    from .models import ACCOUNT_TYPES

    if "type" in patch and patch["type"] not in ACCOUNT_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(ACCOUNT_TYPES)}")


def enforce_rules_employee(patch: dict) -> None:
    if patch.get("salary_cents") is not None:
        _check_amount("salary_cents", patch["salary_cents"])


def _require_dict(payload: Any) -> dict:
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def _reject_unknown(payload: dict, allowed: set[str], where: str = "") -> None:
    for k in payload.keys():
        if k not in allowed:
            raise ValidationError(f"Field not allowed: {where}{k}")


def _optional_text(payload: dict, key: str, max_length: int | None = None) -> str | None:
    raw = payload.get(key)
    if raw is None:
        return None
    if not isinstance(raw, str):
        raise ValidationError(f"{key} must be a string")
    value = raw.strip()
    if max_length and len(value) > max_length:
        raise ValidationError(f"{key} exceeds max length {max_length}")
    return value or None


def parse_transaction_request(payload: Any) -> dict:
    """
    Validate a POST /api/transactions body.

    The body is a tagged union over `type`:
    - sale / purchase / sale_return / purchase_return: items required,
      each quantity > 0
    - adjustment: items required, quantity is a signed non-zero delta
    - expense: no items, amount_cents > 0
    - payroll: not accepted here (salaries create it)

    Totals are never accepted from the client, and the acting user comes from
    the session, so `total_amount_cents` and `user_id` are rejected.
    """
    payload = _require_dict(payload)
    _reject_unknown(payload, {"type", "partner_id", "items", "notes", "amount_cents"})

    tx_type = payload.get("type")
    if tx_type is None:
        raise ValidationError("Missing required fields: type")
    if tx_type not in CLIENT_POSTABLE_TYPES:
        raise ValidationError(f"type must be one of: {', '.join(CLIENT_POSTABLE_TYPES)}")

    partner_id = payload.get("partner_id")
    if partner_id is not None:
        partner_id = coerce_int("partner_id", partner_id)

    request = {
        "type": tx_type,
        "partner_id": partner_id,
        "notes": _optional_text(payload, "notes"),
        "items": [],
        "amount_cents": None,
    }

    if tx_type == "expense":
        if payload.get("items"):
            raise ValidationError("expense transactions cannot have items")
        if payload.get("amount_cents") is None:
            raise ValidationError("amount_cents is required for expense")
        amount = coerce_int("amount_cents", payload["amount_cents"])
        _check_amount("amount_cents", amount, allow_zero=False)
        request["amount_cents"] = amount
        return request

    if "amount_cents" in payload:
        raise ValidationError(f"amount_cents is not allowed for {tx_type}; the total is computed from items")

    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    for i, raw in enumerate(items):
        where = f"items[{i}]."
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{i}] must be an object")
        _reject_unknown(raw, {"product_id", "quantity", "price_cents"}, where)
        missing = [k for k in ("product_id", "quantity", "price_cents") if raw.get(k) is None]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(where + m for m in missing)}")

        product_id = coerce_int(where + "product_id", raw["product_id"])
        quantity = coerce_int(where + "quantity", raw["quantity"])
        price_cents = coerce_int(where + "price_cents", raw["price_cents"])
        _check_amount(where + "price_cents", price_cents)

        if tx_type == "adjustment":
            if quantity == 0:
                raise ValidationError(f"{where}quantity must be non-zero for adjustment")
        elif quantity <= 0:
            raise ValidationError(f"{where}quantity must be > 0 for {tx_type}")
        if abs(quantity) > MAX_ITEM_QUANTITY:
            raise ValidationError(f"{where}quantity cannot exceed {MAX_ITEM_QUANTITY}")

        request["items"].append({
            "product_id": product_id,
            "quantity": quantity,
            "price_cents": price_cents,
        })

    total = sum(item["price_cents"] * item["quantity"] for item in request["items"])
    if abs(total) > MAX_AMOUNT_CENTS:
        raise ValidationError(f"total_amount_cents cannot exceed {MAX_AMOUNT_CENTS}")

    return request


def parse_journal_request(payload: Any) -> dict:
    """Validate a POST /api/journal-entries body (shape only; balance is checked by the poster)."""
    payload = _require_dict(payload)
    _reject_unknown(payload, {"description", "reference", "entry_date", "items"})

    description = _optional_text(payload, "description")
    if not description:
        raise ValidationError("description is required")

    entry_date = None
    if payload.get("entry_date") is not None:
        if not isinstance(payload["entry_date"], str):
            raise ValidationError("entry_date must be an ISO-8601 datetime")
        try:
            entry_date = parse_iso_datetime(payload["entry_date"])
        except ValueError:
            raise ValidationError("entry_date must be an ISO-8601 datetime")

    items = payload.get("items")
    if not isinstance(items, list) or not items:
        raise ValidationError("items must be a non-empty list")

    parsed = []
    for i, raw in enumerate(items):
        where = f"items[{i}]."
        if not isinstance(raw, dict):
            raise ValidationError(f"items[{i}] must be an object")
        _reject_unknown(raw, {"account_id", "debit_cents", "credit_cents"}, where)
        if raw.get("account_id") is None:
            raise ValidationError(f"Missing required fields: {where}account_id")
        line = {"account_id": coerce_int(where + "account_id", raw["account_id"])}
        for key in ("debit_cents", "credit_cents"):
            line[key] = coerce_int(where + key, raw.get(key, 0))
            _check_amount(where + key, line[key])
        parsed.append(line)

    return {
        "description": description,
        "reference": _optional_text(payload, "reference", max_length=128),
        "entry_date": entry_date,
        "items": parsed,
    }


def parse_salary_request(payload: Any) -> dict:
    payload = _require_dict(payload)
    _reject_unknown(payload, {"employee_id", "amount_cents", "month", "notes"})

    missing = [k for k in ("employee_id", "amount_cents", "month") if payload.get(k) is None]
    if missing:
        raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    amount = coerce_int("amount_cents", payload["amount_cents"])
    _check_amount("amount_cents", amount, allow_zero=False)

    month = payload["month"]
    if not isinstance(month, str) or not is_valid_month(month.strip()):
        raise ValidationError("month must be in YYYY-MM format")

    return {
        "employee_id": coerce_int("employee_id", payload["employee_id"]),
        "amount_cents": amount,
        "month": month.strip(),
        "notes": _optional_text(payload, "notes"),
    }
