# Overview: Request decorators that establish caller identity and enforce roles.

from functools import wraps
from flask import request, jsonify, g

ROLE_MANAGER = "manager"
ROLE_CASHIER = "cashier"
ROLE_PHARMACIST = "pharmacist"

VALID_ROLES = {ROLE_MANAGER, ROLE_CASHIER, ROLE_PHARMACIST}


def _header_int(name: str):
    raw = request.headers.get(name, "").strip()
    if not (raw.isascii() and raw.isdigit()):
        return None
    value = int(raw)
    return value if value > 0 else None


def _is_authenticated() -> bool:
    return hasattr(g, 'user_id') and hasattr(g, 'branch_id')


def require_caller(f):
    """
    Establish caller identity from the upstream authentication gateway.

    Sets the following Flask g attributes:
    - g.user_id: The authenticated user's ID
    - g.branch_id: The branch the caller operates in (tenant context) - REQUIRED
    - g.user_role: manager, cashier or pharmacist

    The gateway has already authenticated the caller; these values are
    trusted as-is and never re-derived here.

    Returns 401 if any identity header is missing or malformed.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        user_id = _header_int("X-User-Id")
        branch_id = _header_int("X-Branch-Id")
        role = request.headers.get("X-User-Role", "").strip().lower()

        if user_id is None or branch_id is None:
            return jsonify({"error": "Authentication required"}), 401

        if role not in VALID_ROLES:
            return jsonify({"error": "Invalid caller role"}), 401

        g.user_id = user_id
        g.branch_id = branch_id
        g.user_role = role

        return f(*args, **kwargs)

    return decorated_function


def require_role(*roles):
    """Require the caller to hold one of the given roles."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            # Ensure @require_caller was called first
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            if g.user_role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                }), 403

            return f(*args, **kwargs)

        return decorated_function
    return decorator
