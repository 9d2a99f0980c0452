"""
Application-wide error handlers.

Every error leaving the API uses one envelope:

    {"success": false, "data": null, "message": "...",
     "errors": [{"code": ..., "message": ..., "field": ...}],
     "timestamp": ..., "requestId": ..., "path": ..., "method": ...}
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from flask import Flask, g, has_request_context, jsonify, request
from sqlalchemy.exc import IntegrityError, OperationalError
from werkzeug.exceptions import HTTPException

from estoque.core.exceptions import AppError

logger = logging.getLogger(__name__)

_HTTP_CODES = {
    400: "BAD_REQUEST",
    401: "UNAUTHORIZED",
    403: "FORBIDDEN",
    404: "ROUTE_NOT_FOUND",
    405: "METHOD_NOT_ALLOWED",
    413: "PAYLOAD_TOO_LARGE",
    415: "UNSUPPORTED_MEDIA_TYPE",
    429: "RATE_LIMIT_EXCEEDED",
}


def error_response(
    status_code: int,
    message: str,
    code: str,
    errors: Optional[List[Dict[str, Any]]] = None,
    field: str = "general",
):
    """Build the ``(response, status)`` pair for an error."""
    body: Dict[str, Any] = {
        "success": False,
        "data": None,
        "message": message,
        "errors": errors or [{"code": code, "message": message, "field": field}],
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if has_request_context():
        body["requestId"] = g.get("request_id")
        body["path"] = request.path
        body["method"] = request.method
    return jsonify(body), status_code


def register_error_handlers(app: Flask) -> None:
    """Attach the JSON error handlers to ``app``."""

    @app.errorhandler(AppError)
    def handle_app_error(exc: AppError):
        log = logger.error if exc.status_code >= 500 else logger.info
        log(
            f"{type(exc).__name__}: {exc.message}",
            extra={
                "context": {
                    "code": exc.code,
                    "status_code": exc.status_code,
                    "path": request.path,
                    "request_id": g.get("request_id"),
                }
            },
        )
        return error_response(
            exc.status_code, exc.message, exc.code, errors=exc.to_errors()
        )

    @app.errorhandler(IntegrityError)
    def handle_integrity_error(exc: IntegrityError):
        logger.warning(
            "Integrity constraint violated",
            extra={"context": {"error": str(exc.orig), "path": request.path}},
        )
        return error_response(
            409, "Registro duplicado ou referência inválida", "DUPLICATE_ENTRY"
        )

    @app.errorhandler(OperationalError)
    def handle_operational_error(exc: OperationalError):
        logger.error(
            "Database operation failed",
            extra={"context": {"error": str(exc.orig), "path": request.path}},
            exc_info=True,
        )
        return error_response(500, "Erro de banco de dados", "DATABASE_ERROR")

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc: HTTPException):
        status = exc.code or 500
        code = _HTTP_CODES.get(status, "HTTP_ERROR")
        if status == 404:
            message = f"Rota {request.method} {request.path} não encontrada"
        else:
            message = exc.description or exc.name
        return error_response(status, message, code)

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        logger.error(
            "Unhandled exception",
            extra={
                "context": {
                    "error": str(exc),
                    "error_type": type(exc).__name__,
                    "path": request.path,
                    "request_id": g.get("request_id"),
                }
            },
            exc_info=True,
        )
        return error_response(500, "Erro interno do servidor", "INTERNAL_ERROR")
