# Overview: Flask API routes for transaction posting; parses input and returns JSON responses.

"""
Transaction routes.

The acting user always comes from the bearer session (g.current_user).
Totals are computed server-side from the items.

Time semantics:
- `start`/`end` accept ISO-8601 datetimes with Z/offsets; both bounds are inclusive.
"""

from flask import Blueprint, current_app, g, request

from ..decorators import require_auth
from ..services import posting_service
from ..time_utils import parse_iso_datetime
from ..validation import NotFoundError, ValidationError, parse_transaction_request

transactions_bp = Blueprint("transactions", __name__, url_prefix="/api/transactions")


@transactions_bp.get("")
@require_auth
def list_transactions_route():
    """
    Query params:
    - type: transaction type
    - start, end: ISO-8601 bounds on transaction_date
    - partner_id: int
    """
    try:
        start = parse_iso_datetime(request.args.get("start"))
        end = parse_iso_datetime(request.args.get("end"))
    except ValueError:
        return {"error": "start/end must be ISO-8601 datetimes"}, 400

    rows = posting_service.list_transactions(
        type=request.args.get("type"),
        start=start,
        end=end,
        partner_id=request.args.get("partner_id", type=int),
    )
    return {"items": [tx.to_dict() for tx in rows]}


@transactions_bp.get("/<int:transaction_id>")
@require_auth
def get_transaction_route(transaction_id: int):
    tx = posting_service.get_transaction(transaction_id)
    if not tx:
        return {"error": "Transaction not found"}, 404
    return tx.to_dict(include_items=True)


@transactions_bp.post("")
@require_auth
def post_transaction_route():
    """
    Post a sale, purchase, return, adjustment or expense.

    Any validation or lookup failure rolls the whole posting back and returns 400.
    """
    try:
        req = parse_transaction_request(request.get_json(silent=True))
    except ValidationError as e:
        return {"error": str(e)}, 400

    try:
        tx = posting_service.post_transaction(
            type=req["type"],
            user_id=g.current_user.id,
            items=req["items"],
            partner_id=req["partner_id"],
            notes=req["notes"],
            amount_cents=req["amount_cents"],
        )
    except (ValidationError, NotFoundError) as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to post transaction")
        return {"error": "Internal server error"}, 500

    return tx.to_dict(include_items=True), 201


@transactions_bp.post("/<int:transaction_id>/void")
@require_auth
def void_transaction_route(transaction_id: int):
    """
    Void a completed transaction and reverse its stock effects.

    Body (optional): {"reason": str}
    """
    payload = request.get_json(silent=True) or {}
    reason = payload.get("reason") if isinstance(payload, dict) else None
    if reason is not None and not isinstance(reason, str):
        return {"error": "reason must be a string"}, 400
    if reason and len(reason) > 255:
        return {"error": "reason exceeds max length 255"}, 400

    if not posting_service.get_transaction(transaction_id):
        return {"error": "Transaction not found"}, 404

    try:
        tx = posting_service.void_transaction(
            transaction_id,
            user_id=g.current_user.id,
            reason=reason or None,
        )
    except (ValidationError, NotFoundError) as e:
        return {"error": str(e)}, 400
    except Exception:
        current_app.logger.exception("Failed to void transaction")
        return {"error": "Internal server error"}, 500

    return tx.to_dict(include_items=True)
