"""
Common API utilities for consistent response formatting across all controllers.
"""

from typing import Any, Mapping, Optional, Tuple

from flask import jsonify, request

from estoque.core.config import get_default_page_size, get_max_page_size
from estoque.core.exceptions import ValidationError


def api_response(
    success: bool,
    message: str,
    data: Optional[Any] = None,
    status_code: int = 200,
    meta: Optional[dict] = None,
) -> tuple:
    """
    Standardized API response format for all endpoints.

    Args:
        success: Whether the operation was successful
        message: Human-readable message about the operation
        data: Optional data payload
        status_code: HTTP status code
        meta: Optional metadata (OData query echo, cache flag)

    Returns:
        Tuple of (json_response, status_code)
    """
    response = {"success": success, "message": message, "data": data}
    if meta is not None:
        response["meta"] = meta
    return jsonify(response), status_code


def get_json_body() -> dict:
    """Return the JSON object body or raise ``ValidationError``."""
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Corpo da requisição deve ser um objeto JSON")
    return data


def parse_bool_arg(value: Optional[str]) -> Optional[bool]:
    """Parse ``true/false/1/0/yes/no``; ``None`` or empty stays ``None``."""
    if value is None or str(value).strip() == "":
        return None
    lowered = str(value).strip().lower()
    if lowered in ("true", "1", "yes"):
        return True
    if lowered in ("false", "0", "no"):
        return False
    raise ValidationError(f"Valor booleano inválido: {value}")


def _parse_positive_int(raw: Optional[str], name: str, default: int) -> int:
    if raw is None or str(raw).strip() == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(
            f"{name} deve ser um número inteiro",
            details=[
                {
                    "code": "INVALID_PAGINATION",
                    "message": f"{name} deve ser um número inteiro",
                    "field": name,
                }
            ],
        )
    if value < 1:
        raise ValidationError(
            f"{name} deve ser maior que zero",
            details=[
                {
                    "code": "INVALID_PAGINATION",
                    "message": f"{name} deve ser maior que zero",
                    "field": name,
                }
            ],
        )
    return value


def parse_pagination_args(args: Mapping[str, str]) -> Tuple[int, int]:
    """Read ``page`` and ``pageSize`` from query args.

    ``pageSize`` is capped at MAX_PAGE_SIZE.
    """
    page = _parse_positive_int(args.get("page"), "page", 1)
    page_size = _parse_positive_int(
        args.get("pageSize"), "pageSize", get_default_page_size()
    )
    return page, min(page_size, get_max_page_size())
