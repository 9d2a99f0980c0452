"""
Custom exceptions for the application.

Every exception carries the HTTP status and machine-readable code used by
``estoque.core.error_handlers`` to build the error envelope.
"""

from typing import Any, Dict, List, Optional


class AppError(Exception):
    """Base class for errors that map onto an HTTP response."""

    status_code = 500
    code = "INTERNAL_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[List[Dict[str, Any]]] = None,
        status_code: Optional[int] = None,
    ):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code
        if status_code is not None:
            self.status_code = status_code
        self.details = details or []

    def to_errors(self) -> List[Dict[str, Any]]:
        """Return the ``errors`` list of the response envelope."""
        if self.details:
            return self.details
        return [{"code": self.code, "message": self.message, "field": "general"}]


class ValidationError(AppError):
    """Request payload failed validation."""

    status_code = 400
    code = "VALIDATION_ERROR"


class ODataQueryError(AppError):
    """Malformed OData query option."""

    status_code = 400
    code = "INVALID_ODATA_QUERY"


class UnauthorizedError(AppError):
    status_code = 401
    code = "UNAUTHORIZED"


class ForbiddenError(AppError):
    status_code = 403
    code = "FORBIDDEN"


class NotFoundError(AppError):
    status_code = 404
    code = "NOT_FOUND"

    def __init__(self, resource: str = "Recurso", message: Optional[str] = None):
        super().__init__(message or f"{resource} não encontrado")
        self.resource = resource


class ConflictError(AppError):
    status_code = 409
    code = "CONFLICT"


class BusinessRuleError(AppError):
    """A domain rule rejected the operation (stock, status transitions...)."""

    status_code = 422
    code = "BUSINESS_RULE_VIOLATION"
