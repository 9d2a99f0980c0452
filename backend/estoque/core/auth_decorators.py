"""
Authentication and authorization helpers for the API.

All endpoints authenticate with a JWT Bearer token issued by
``estoque.core.security.create_user_token`` (see ``manage.py issue-token``).
The token carries the user's roles; write endpoints additionally require
one of a set of roles.

DECORATOR GUIDE:
- @jwt_required: any authenticated user (list/get endpoints)
- @require_role("Create", "Update", "Admin"): authenticated user holding at
  least one of the listed roles (write endpoints). Implies @jwt_required.

Examples:
    @products_bp.route("/", methods=["GET"])
    @jwt_required
    def list_products():
        ...

    @products_bp.route("/<product_id>", methods=["DELETE"])
    @require_role(ROLE_DELETE, ROLE_ADMIN)
    def delete_product(product_id):
        ...

Error bodies use the same envelope as ``estoque.core.error_handlers`` with
codes MISSING_TOKEN, TOKEN_EXPIRED, INVALID_TOKEN, UNAUTHENTICATED and
INSUFFICIENT_PERMISSIONS.
"""

import logging
from functools import wraps
from types import SimpleNamespace
from typing import Any, Iterable, Optional

from flask import current_app, g, request

from estoque.core.error_handlers import error_response
from estoque.core.security import (
    ALL_ROLES,
    ROLE_ADMIN,
    TokenExpired,
    TokenInvalid,
    decode_token_strict,
    user_from_payload,
)

logger = logging.getLogger(__name__)

TEST_USER_ID = "00000000-0000-4000-8000-000000000999"


def get_current_user() -> Optional[Any]:
    """Return the user stored on ``g`` by the decorators, if any."""
    return g.get("current_user")


def has_role(user: Any, role: str) -> bool:
    return role in (getattr(user, "roles", None) or [])


def has_any_role(user: Any, roles: Iterable[str]) -> bool:
    return any(has_role(user, role) for role in roles)


def has_all_roles(user: Any, roles: Iterable[str]) -> bool:
    return all(has_role(user, role) for role in roles)


def _build_user(user_data: dict) -> SimpleNamespace:
    user = SimpleNamespace()
    user.id = user_data["user_id"]
    user.email = user_data["email"]
    user.roles = list(user_data.get("roles") or [])
    user.company_id = user_data.get("company_id")
    return user


def _authenticate():
    """Resolve ``g.current_user`` from the request.

    Returns None on success or an error response tuple.
    """
    if current_app.config.get("LOGIN_DISABLED", False):
        # In test mode with LOGIN_DISABLED, act as an administrator
        g.current_user = _build_user(
            {
                "user_id": TEST_USER_ID,
                "email": "test@authorized.com",
                "roles": list(ALL_ROLES),
                "company_id": None,
            }
        )
        return None

    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer ") or not auth_header[7:].strip():
        return error_response(401, "Token de acesso não fornecido", "MISSING_TOKEN")

    token = auth_header[7:].strip()
    try:
        payload = decode_token_strict(token)
    except TokenExpired:
        return error_response(401, "Token expirado", "TOKEN_EXPIRED")
    except TokenInvalid:
        return error_response(401, "Token inválido", "INVALID_TOKEN")

    user_data = user_from_payload(payload)
    if not user_data:
        return error_response(401, "Token inválido", "INVALID_TOKEN")

    g.current_user = _build_user(user_data)
    return None


def jwt_required(f):
    """Decorator to require JWT authentication for API endpoints.

    Extracts the JWT from the Authorization header and stores the user on
    ``g.current_user``. Returns 401 when the token is missing, expired or
    invalid.
    """

    @wraps(f)
    def decorated_function(*args, **kwargs):
        failure = _authenticate()
        if failure is not None:
            return failure
        return f(*args, **kwargs)

    return decorated_function


def require_role(*allowed_roles: str):
    """Decorator factory requiring at least one of ``allowed_roles``.

    Returns:
        - 401 if not authenticated
        - 403 if authenticated but none of the roles match
    """

    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if get_current_user() is None:
                failure = _authenticate()
                if failure is not None:
                    return failure

            user = get_current_user()
            if user is None:
                return error_response(
                    401, "Usuário não autenticado", "UNAUTHENTICATED"
                )

            if not has_any_role(user, allowed_roles):
                logger.warning(
                    "Access denied: missing role",
                    extra={
                        "context": {
                            "user_id": user.id,
                            "user_roles": user.roles,
                            "required_roles": list(allowed_roles),
                            "path": request.path,
                        }
                    },
                )
                return error_response(
                    403,
                    "Permissões insuficientes para esta operação",
                    "INSUFFICIENT_PERMISSIONS",
                )
            return f(*args, **kwargs)

        return decorated_function

    return decorator


def require_admin(f):
    """Shortcut for ``require_role("Admin")``."""
    return require_role(ROLE_ADMIN)(f)
