# Overview: Request decorators for API routes: authentication, capabilities, and error mapping.

from functools import wraps
from flask import request, jsonify, g, current_app

from .extensions import db
from .services import auth_service
from .validation import (
    AccessDeniedError,
    BusinessRuleError,
    ConflictError,
    ContentionError,
    ValidationError,
)


def require_auth(f):
    """
    Require a bearer token and establish the request's identity.

    Sets the following Flask g attributes:
    - g.current_user: the authenticated User
    - g.capabilities: the Capabilities derived from the user's role

    Returns 401 if the header is missing, or the token is unknown, expired,
    revoked, or belongs to a deactivated user.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        auth_header = request.headers.get("Authorization")

        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authentication required"}), 401

        token = auth_header.split(" ", 1)[1]
        user = auth_service.validate_session(token)

        if not user:
            return jsonify({"error": "Invalid or expired token"}), 401

        g.current_user = user
        g.capabilities = auth_service.capabilities_for(user)
        g.token = token

        return f(*args, **kwargs)

    return decorated_function


def require_capability(name: str):
    """Require a capability flag (e.g. "can_manage_discounts"). Use after @require_auth."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not hasattr(g, "capabilities"):
                return jsonify({"error": "Authentication required"}), 401
            if not getattr(g.capabilities, name, False):
                return jsonify({
                    "error": "Permission denied",
                    "required_capability": name,
                }), 403
            return f(*args, **kwargs)

        return decorated_function
    return decorator


def resolve_outlet_id(requested) -> int | None:
    """
    Outlet the request acts on.

    Owners may pick any outlet (None when they pick none). Cashiers always act
    on their own outlet; asking for another one is denied.
    """
    caps = g.capabilities
    if requested in (None, ""):
        return None if caps.can_select_outlet else caps.outlet_id
    try:
        requested = int(requested)
    except (TypeError, ValueError):
        raise ValidationError("outlet_id must be an integer")
    if not caps.can_select_outlet and requested != caps.outlet_id:
        raise AccessDeniedError("Outlet access denied")
    return requested


def error_response(exc: Exception):
    """Map a service exception to its JSON response."""
    if isinstance(exc, AccessDeniedError):
        return jsonify({"error": str(exc)}), 403
    if isinstance(exc, ContentionError):
        return jsonify({"error": str(exc), "retry": True}), 409
    if isinstance(exc, ConflictError):
        return jsonify({"error": str(exc)}), 409
    if isinstance(exc, BusinessRuleError):
        return jsonify({"error": str(exc), "details": exc.details}), 422
    if isinstance(exc, ValidationError):
        return jsonify({"error": str(exc)}), 400
    raise exc


def handle_service_errors(action: str):
    """
    Turn service exceptions into JSON errors.

    Known errors map to 400/403/409/422. Anything else is logged with a
    traceback as "Failed to <action>" and answered with a generic 500.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            try:
                return f(*args, **kwargs)
            except (ValidationError, ConflictError, BusinessRuleError, ContentionError, AccessDeniedError) as e:
                db.session.rollback()
                return error_response(e)
            except Exception:
                db.session.rollback()
                current_app.logger.exception("Failed to %s", action)
                return jsonify({"error": "Internal server error"}), 500

        return decorated_function
    return decorator
