# Core package initialization
# Cross-cutting concerns: configuration, logging, errors, auth and OData.

from . import exceptions, security

__all__ = [
    "exceptions",
    "security",
]
