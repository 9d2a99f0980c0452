"""
Helpers shared by the domain blueprints: query-arg parsing and the OData
list endpoint flow.
"""

import logging
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, Mapping, Optional

from flask import jsonify, request

from estoque.core.api_utils import api_response, parse_bool_arg, parse_pagination_args
from estoque.core.auth_decorators import get_current_user
from estoque.core.exceptions import ValidationError
from estoque.core.odata.parser import parse_odata_query
from estoque.db.session import SessionLocal
from estoque.domain.pagination import PaginatedResult
from estoque.schemas.dtos import serialize_page
from estoque.services.odata_service import ODataListService

logger = logging.getLogger(__name__)


def current_user_id() -> Optional[str]:
    user = get_current_user()
    return getattr(user, "id", None) if user is not None else None


def arg_decimal(args: Mapping[str, str], name: str) -> Optional[Decimal]:
    raw = args.get(name)
    if raw is None or str(raw).strip() == "":
        return None
    try:
        return Decimal(str(raw).strip())
    except InvalidOperation:
        raise ValidationError(
            f"{name} deve ser um número",
            details=[{"code": "INVALID_FILTER", "message": f"{name} deve ser um número", "field": name}],
        )


def arg_datetime(args: Mapping[str, str], name: str) -> Optional[datetime]:
    raw = args.get(name)
    if raw is None or str(raw).strip() == "":
        return None
    try:
        return datetime.fromisoformat(str(raw).strip().replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(
            f"{name} deve ser uma data ISO 8601",
            details=[{"code": "INVALID_FILTER", "message": f"{name} deve ser uma data ISO 8601", "field": name}],
        )


def arg_text(args: Mapping[str, str], name: str) -> Optional[str]:
    raw = args.get(name)
    if raw is None:
        return None
    raw = str(raw).strip()
    return raw or None


def base_filters(args: Mapping[str, str]) -> Dict[str, Any]:
    page, page_size = parse_pagination_args(args)
    return {
        "page": page,
        "page_size": page_size,
        "is_active": parse_bool_arg(args.get("isActive")),
    }


def odata_list_response(
    entity_name: str,
    list_odata: Callable[[Any], Callable[[Any], PaginatedResult]],
    serializer: Callable[[Any], Dict[str, Any]],
    message: str,
):
    """Handle ``GET /<entity>/odata``.

    ``list_odata(db)`` returns the bound service method for a fresh session.
    ``$count=true`` answers ``{"@odata.count": n}`` only.
    """
    query = parse_odata_query(request.args)

    def fetch() -> Dict[str, Any]:
        db = SessionLocal()
        try:
            result = list_odata(db)(query)
            if query is not None and query.count:
                return {"@odata.count": result.total}
            return serialize_page(result, serializer, query)
        finally:
            db.close()

    payload, cached = ODataListService().list(entity_name, query, current_user_id(), fetch)
    if query is not None and query.count:
        return jsonify(payload), 200

    logger.debug(
        "OData list served",
        extra={"context": {"entity": entity_name, "cached": cached}},
    )
    return api_response(
        True,
        message,
        payload,
        meta={"odata": query.to_dict() if query is not None else None, "cached": cached},
    )
