# Overview: Request decorators for API routes (bearer auth, admin role, sync token).

import hmac
from functools import wraps

from flask import current_app, g, jsonify, request

from .services import session_service


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1]


def require_auth(f):
    """
    Require a valid bearer session.

    Sets g.current_user to the authenticated User. Postings take their
    user_id from here, never from the request body.

    Returns 401 if the header is missing, the token is unknown, revoked or
    expired, or the user is deactivated.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        user = session_service.validate_session(token)
        if not user:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = user
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Must be stacked below @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user = getattr(g, "current_user", None)
        if user is None:
            return jsonify({"error": "Authentication required"}), 401
        if user.role != "admin":
            return jsonify({"error": "Permission denied"}), 403
        return f(*args, **kwargs)

    return decorated_function


def require_sync_token(f):
    """
    Guard the peer-facing sync endpoint.

    When SYNC_TOKEN is configured the X-Sync-Token header must match it;
    otherwise the endpoint is open, as peers have no user session.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        expected = current_app.config.get("SYNC_TOKEN")
        if expected:
            provided = request.headers.get("X-Sync-Token") or ""
            if not hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8")):
                return jsonify({"error": "Invalid sync token"}), 401
        return f(*args, **kwargs)

    return decorated_function
