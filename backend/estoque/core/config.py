"""
Centralized configuration module for application-wide settings.

Values are read from environment variables (optionally loaded from a .env
file by ``estoque.main``). Each setting has a getter that can be re-evaluated
in tests plus a module-level global cached at import time.
"""

import logging
import os

logger = logging.getLogger(__name__)

_TRUTHY = ("true", "1", "yes")


def _get_int(name: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except (TypeError, ValueError):
        logger.warning(
            f"Invalid integer for {name}; using default",
            extra={"context": {"env_var": name, "value": raw, "default": default}},
        )
        return default
    if value < minimum:
        logger.warning(
            f"{name} below minimum; using default",
            extra={"context": {"env_var": name, "value": value, "default": default}},
        )
        return default
    return value


def _get_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in _TRUTHY


# ===========================
# Environment
# ===========================


def get_environment() -> str:
    """Return the FLASK_ENV value (``development`` when unset)."""
    return os.getenv("FLASK_ENV", "development")


def is_production() -> bool:
    return get_environment() == "production"


def is_test_mode() -> bool:
    """Check if we're running in test mode (pytest/CI)."""
    return os.getenv("TESTING", "").lower().strip() in _TRUTHY


# ===========================
# Pagination Configuration
# ===========================


def get_default_page_size() -> int:
    """
    Get the page size used when a request does not specify one.

    Environment Variables:
        DEFAULT_PAGE_SIZE: Items per page (default: 15)
    """
    return _get_int("DEFAULT_PAGE_SIZE", 15, minimum=1)


def get_max_page_size() -> int:
    """
    Get the upper bound for ``pageSize`` and ``$top``.

    Environment Variables:
        MAX_PAGE_SIZE: Maximum items per page (default: 100)
    """
    return _get_int("MAX_PAGE_SIZE", 100, minimum=1)


DEFAULT_PAGE_SIZE = get_default_page_size()
MAX_PAGE_SIZE = get_max_page_size()


# ===========================
# Stock Configuration
# ===========================


def get_low_stock_threshold() -> int:
    """
    Get the low-stock level used for products without ``minStockLevel``.

    Environment Variables:
        LOW_STOCK_THRESHOLD: Units (default: 5)
    """
    return _get_int("LOW_STOCK_THRESHOLD", 5)


# ===========================
# Database Monitoring
# ===========================


def get_slow_query_threshold_ms() -> int:
    """
    Get the duration above which a statement is reported as slow.

    Environment Variables:
        SLOW_QUERY_THRESHOLD_MS: Milliseconds (default: 100)
    """
    return _get_int("SLOW_QUERY_THRESHOLD_MS", 100, minimum=1)


def get_slow_query_alerts_enabled() -> bool:
    return _get_bool("SLOW_QUERY_ALERTS_ENABLED", "true")


# ===========================
# OData Cache Configuration
# ===========================


def get_odata_cache_enabled() -> bool:
    """
    Get whether OData list results are cached in memory.

    Environment Variables:
        ODATA_CACHE_ENABLED: "true"/"false" (default: true)
    """
    return _get_bool("ODATA_CACHE_ENABLED", "true")


def get_odata_cache_ttl() -> int:
    """
    Get the base TTL (seconds) for cached OData results.

    Environment Variables:
        ODATA_CACHE_TTL_SECONDS: TTL in seconds (default: 300)
    """
    return _get_int("ODATA_CACHE_TTL_SECONDS", 300, minimum=1)


def get_odata_cache_max_size() -> int:
    """
    Get the maximum number of cached OData results.

    Environment Variables:
        ODATA_CACHE_MAX_SIZE: Entry count (default: 1000)
    """
    return _get_int("ODATA_CACHE_MAX_SIZE", 1000, minimum=1)


def get_cache_purge_interval_minutes() -> int:
    """
    Get how often the background job drops expired cache entries.

    Environment Variables:
        ODATA_CACHE_PURGE_MINUTES: Minutes between runs (default: 10)
        ENABLE_CACHE_PURGE_JOB: "true"/"false" toggles the job (default: true)
    """
    return _get_int("ODATA_CACHE_PURGE_MINUTES", 10, minimum=1)


def get_cache_purge_job_enabled() -> bool:
    return _get_bool("ENABLE_CACHE_PURGE_JOB", "true")


ODATA_CACHE_ENABLED = get_odata_cache_enabled()
ODATA_CACHE_TTL_SECONDS = get_odata_cache_ttl()
ODATA_CACHE_MAX_SIZE = get_odata_cache_max_size()


def log_odata_config():
    """
    Log the active OData configuration.

    Should be called during application startup to provide visibility
    into pagination and cache settings.
    """
    logger.info(
        "OData configuration initialized",
        extra={
            "context": {
                "default_page_size": DEFAULT_PAGE_SIZE,
                "max_page_size": MAX_PAGE_SIZE,
                "cache_enabled": ODATA_CACHE_ENABLED,
                "cache_ttl_seconds": ODATA_CACHE_TTL_SECONDS,
                "cache_max_size": ODATA_CACHE_MAX_SIZE,
            }
        },
    )


# ===========================
# Authentication Configuration
# ===========================


def get_jwt_expiration_hours() -> int:
    """
    Get the default lifetime of issued access tokens.

    Environment Variables:
        JWT_EXPIRATION_HOURS: Hours (default: 24)
    """
    return _get_int("JWT_EXPIRATION_HOURS", 24, minimum=1)


def get_login_disabled() -> bool:
    """
    Get whether authentication is bypassed.

    Only honoured for tests: requests act as an administrator holding
    every role.

    Environment Variables:
        LOGIN_DISABLED: "true"/"false" (default: false)
    """
    return _get_bool("LOGIN_DISABLED", "false")


JWT_EXPIRATION_HOURS = get_jwt_expiration_hours()


def log_auth_config():
    """Log the authentication configuration (without secrets)."""
    logger.info(
        "Authentication configuration initialized",
        extra={
            "context": {
                "jwt_expiration_hours": JWT_EXPIRATION_HOURS,
                "jwt_secret_set": bool(os.getenv("JWT_SECRET_KEY")),
                "login_disabled": get_login_disabled(),
            }
        },
    )
