# Overview: Request decorators and error-to-response mapping for API routes.

from functools import wraps
from flask import request, jsonify, g, current_app
from sqlalchemy.orm.exc import StaleDataError

from .services import session_service
from .services.auth_service import AuthenticationError
from .services.return_ledger import ReturnValidationError, ReferenceNotFoundError
from .validation import ValidationError, ConflictError, NotFoundError, AccessDeniedError


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1].strip() or None


def require_auth(f):
    """
    Require a live session token.

    Sets on Flask g:
    - g.identity: the caller's Identity (role, name, worker_id, email)
    - g.token: the plaintext bearer token (for logout)

    Returns 401 if the header is missing or the token is unknown, revoked
    or expired.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        identity = session_service.validate_session(token)
        if not identity:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.identity = identity
        g.token = token
        return f(*args, **kwargs)

    return decorated_function


def require_admin(f):
    """Require an admin identity. Must be stacked under @require_auth."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        identity = getattr(g, "identity", None)
        if identity is None:
            return jsonify({"error": "Authentication required"}), 401
        if not identity.is_admin:
            return jsonify({"error": "Admin access required"}), 403
        return f(*args, **kwargs)

    return decorated_function


def json_error(exc: Exception, action: str = "process request"):
    """Map a service exception to a JSON error response."""
    if isinstance(exc, ReferenceNotFoundError):
        return jsonify(exc.to_dict()), 404
    if isinstance(exc, ReturnValidationError):
        return jsonify(exc.to_dict()), 400
    if isinstance(exc, ValidationError):
        return jsonify({"error": str(exc)}), 400
    if isinstance(exc, AuthenticationError):
        return jsonify({"error": str(exc)}), 401
    if isinstance(exc, AccessDeniedError):
        return jsonify({"error": str(exc)}), 403
    if isinstance(exc, NotFoundError):
        return jsonify({"error": str(exc)}), 404
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc)}), 409
    if isinstance(exc, StaleDataError):
        return jsonify({"error": "Transaction was modified by someone else. Reload and try again."}), 409

    current_app.logger.exception("Failed to %s", action)
    return jsonify({"error": "Internal server error"}), 500
