import os
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

import jwt

from estoque.core.config import get_jwt_expiration_hours, is_production

JWT_ALGORITHM = "HS256"

ROLE_ADMIN = "Admin"
ROLE_CREATE = "Create"
ROLE_UPDATE = "Update"
ROLE_DELETE = "Delete"
ROLE_READ = "Read"
ALL_ROLES = (ROLE_ADMIN, ROLE_CREATE, ROLE_UPDATE, ROLE_DELETE, ROLE_READ)

_WEAK_SECRETS = ("dev-jwt-secret-change-me", "dev-secret-change-me", "secret123")


class TokenExpired(Exception):
    """Raised when a token signature is valid but its ``exp`` has passed."""


class TokenInvalid(Exception):
    """Raised for malformed tokens or bad signatures."""


def get_jwt_secret_key() -> str:
    """Signing key for access tokens, read from JWT_SECRET_KEY.

    Under FLASK_ENV=production a development default or a key shorter
    than 32 characters is refused.

    Raises:
        ValueError: weak key in production
    """
    key = os.getenv("JWT_SECRET_KEY", "dev-jwt-secret-change-me")
    if is_production():
        if key in _WEAK_SECRETS or len(key) < 32:
            raise ValueError(
                "JWT_SECRET_KEY must be set to a random value of at least 32 characters in production"
            )
    return key


def create_access_token(claims: Dict[str, Any], expires_delta: Optional[timedelta] = None) -> str:
    """Sign ``claims`` with ``iat``/``exp`` added (JWT_EXPIRATION_HOURS by default)."""
    issued_at = datetime.now(timezone.utc)
    lifetime = expires_delta if expires_delta is not None else timedelta(hours=get_jwt_expiration_hours())
    payload = {**claims, "iat": issued_at, "exp": issued_at + lifetime}
    return jwt.encode(payload, get_jwt_secret_key(), algorithm=JWT_ALGORITHM)


def decode_token_strict(token: str) -> Dict[str, Any]:
    """Decode a token, raising ``TokenExpired`` or ``TokenInvalid``."""
    try:
        return jwt.decode(token, get_jwt_secret_key(), algorithms=[JWT_ALGORITHM])
    except jwt.ExpiredSignatureError as exc:
        raise TokenExpired(str(exc)) from exc
    except jwt.PyJWTError as exc:
        raise TokenInvalid(str(exc)) from exc


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """Lenient variant of :func:`decode_token_strict`.

    Returns:
        the claims, or None for any expired or unverifiable token
    """
    try:
        return decode_token_strict(token)
    except (TokenExpired, TokenInvalid):
        return None


def normalize_roles(roles: Optional[Iterable[str]]) -> List[str]:
    """Keep only known role names, preserving order and dropping duplicates."""
    known = {role.lower(): role for role in ALL_ROLES}
    result: List[str] = []
    for role in roles or []:
        canonical = known.get(str(role).strip().lower())
        if canonical and canonical not in result:
            result.append(canonical)
    return result


def create_user_token(
    user_id: str,
    email: str,
    roles: Optional[Iterable[str]] = None,
    company_id: Optional[str] = None,
    expires_delta: Optional[timedelta] = None,
) -> str:
    """Create a JWT token carrying the user's roles and company."""
    token_data = {
        "sub": str(user_id),
        "email": email,
        "roles": normalize_roles(roles),
        "companyId": company_id,
        "type": "access",
    }
    return create_access_token(token_data, expires_delta)


def user_from_payload(payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    user_id = payload.get("sub")
    email = payload.get("email")
    if user_id is None or email is None:
        return None
    roles = payload.get("roles") or []
    if isinstance(roles, str):
        roles = [roles]
    return {
        "user_id": str(user_id),
        "email": email,
        "roles": normalize_roles(roles),
        "company_id": payload.get("companyId"),
    }


def get_user_from_token(token: str) -> Optional[Dict[str, Any]]:
    """Resolve a bearer token to the caller it was issued for.

    Returns:
        ``{"user_id", "email", "roles", "company_id"}`` if valid, None otherwise
    """
    payload = decode_access_token(token)
    if payload is None:
        return None
    return user_from_payload(payload)
