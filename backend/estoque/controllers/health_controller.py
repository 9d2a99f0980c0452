"""Probes for load balancers and operators."""

import logging

from flask import Blueprint, jsonify
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from estoque.core.auth_decorators import jwt_required
from estoque.core.limiter_config import limiter
from estoque.core.odata import odata_cache
from estoque.db.session import get_engine

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/health")
limiter.exempt(health_bp)


def check_database_connection() -> bool:
    try:
        with get_engine().connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as exc:
        logger.error("Health probe cannot reach the database", extra={"context": {"error": str(exc)}})
        return False
    return True


@health_bp.get("")
def health_check():
    """200 while the database answers, 503 otherwise. Public."""
    up = check_database_connection()
    body = {"status": "healthy" if up else "unhealthy", "database": "connected" if up else "disconnected"}
    return jsonify(body), 200 if up else 503


@health_bp.get("/cache")
@jwt_required
def cache_health():
    stats = odata_cache.get_stats()
    logger.debug("OData cache stats requested", extra={"context": stats})
    return jsonify(status="healthy", cache=stats)
