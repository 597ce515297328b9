# Overview: Flask API routes for the chart of accounts and journal entries.

from flask import Blueprint, current_app, request

from ..decorators import require_auth
from ..models import Account
from ..services import journal_service
from ..validation import (
    ConflictError,
    ModelValidationPolicy,
    NotFoundError,
    ValidationError,
    enforce_rules_account,
    parse_journal_request,
    validate_payload,
)

ACCOUNT_POLICY = ModelValidationPolicy(
    writable_fields={"code", "name", "type", "parent_account_id"},
    required_on_create={"code", "name", "type"},
)

accounts_bp = Blueprint("accounts", __name__, url_prefix="/api/accounts")
journal_bp = Blueprint("journal", __name__, url_prefix="/api/journal-entries")


@accounts_bp.get("")
@require_auth
def list_accounts_route():
    return {"items": [a.to_dict() for a in journal_service.list_accounts()]}


@accounts_bp.post("")
@require_auth
def create_account_route():
    payload = request.get_json(silent=True) or {}
    try:
        patch = validate_payload(model=Account, payload=payload, policy=ACCOUNT_POLICY, partial=False)
        enforce_rules_account(patch)
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        account = journal_service.create_account(patch=patch)
    except ConflictError as e:
        return {"error": str(e)}, 409
    except NotFoundError as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to create account")
        return {"error": "Internal server error"}, 500

    return account.to_dict(), 201


@journal_bp.get("")
@require_auth
def list_journal_entries_route():
    entries = journal_service.list_journal_entries()
    return {"items": [e.to_dict(include_items=True) for e in entries]}


@journal_bp.post("")
@require_auth
def post_journal_entry_route():
    """
    Post a balanced journal entry.

    400 when debits and credits differ, a line is malformed, or an account
    does not exist. Nothing is written in any of those cases.
    """
    try:
        req = parse_journal_request(request.get_json(silent=True))
        entry = journal_service.post_journal_entry(
            description=req["description"],
            items=req["items"],
            reference=req["reference"],
            entry_date=req["entry_date"],
        )
    except (ValidationError, NotFoundError) as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to post journal entry")
        return {"error": "Internal server error"}, 500

    return entry.to_dict(include_items=True), 201
