# Overview: Request decorators that establish the acting user for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import directory_service
from .permissions import Actor, HUMAN_ROLES


ACTOR_ID_HEADER = "X-Actor-Id"
ACTOR_ROLE_HEADER = "X-Actor-Role"


def require_actor(*roles: str):
    """
    Resolve the acting user from the auth gateway's headers.

    Sets:
    - g.actor: Actor(id, role)
    - g.account: the Directory Account behind it

    Returns 401 when the headers are missing, malformed, or name an account
    that does not exist or has a different role; 403 when the account is not
    active or the role is not one of `roles` (if given).
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            raw_id = request.headers.get(ACTOR_ID_HEADER)
            role = (request.headers.get(ACTOR_ROLE_HEADER) or "").strip()

            if not raw_id or not role:
                return jsonify({"error": "Authentication required"}), 401

            try:
                actor_id = int(raw_id)
            except ValueError:
                return jsonify({"error": "Invalid actor id"}), 401

            if role not in HUMAN_ROLES:
                return jsonify({"error": "Invalid actor role"}), 401

            account = directory_service.find_account(actor_id)
            if account is None or account.role != role:
                return jsonify({"error": "Unknown actor"}), 401

            if not account.is_active:
                return jsonify({"error": "Account is not active", "details": {"status": account.status}}), 403

            if roles and role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "details": {"role": role, "allowed_roles": list(roles)},
                }), 403

            g.actor = Actor(id=account.id, role=account.role)
            g.account = account
            return f(*args, **kwargs)

        return decorated_function

    return decorator
