"""
Statement timing for the e-Estoque engine.

Each statement is timed on the connection. Statements slower than
SLOW_QUERY_THRESHOLD_MS become ``slow_query`` warnings on the
``estoque.sql`` logger, tagged with the request id, route and user; with
debug timing switched on every statement is also logged at DEBUG.

Bound parameters that may carry secrets or customer data (documents,
e-mails, phones) are masked before they reach the logs.
"""

import logging
import time
from typing import Any, Dict, List

from flask import g, has_request_context
from sqlalchemy import event
from sqlalchemy.engine import Engine

from estoque.core.config import get_slow_query_alerts_enabled, get_slow_query_threshold_ms

logger = logging.getLogger("estoque.sql")

MASKED_PARAMS = ("password", "secret", "token", "doc_id", "email", "phone")
STATEMENT_LIMIT = 500

_debug_timing = False


def enable_debug_timing(enabled: bool = True) -> None:
    """Log the duration of every statement at DEBUG level."""
    global _debug_timing
    _debug_timing = enabled


def _truncate(value: Any, limit: int) -> str:
    text = str(value)
    return text if len(text) <= limit else text[:limit] + "..."


def mask_params(params: Any) -> Any:
    """Copy of ``params`` with sensitive keys replaced by ``***``."""
    if isinstance(params, dict):
        return {
            key: "***" if any(name in str(key).lower() for name in MASKED_PARAMS) else mask_params(value)
            for key, value in params.items()
        }
    if isinstance(params, (list, tuple)):
        return [mask_params(item) for item in params]
    if isinstance(params, bytes):
        return "<binary>"
    return _truncate(params, 200)


def _request_tags() -> Dict[str, Any]:
    if not has_request_context():
        return {}
    tags = {"request_id": g.get("request_id"), "route": g.get("route")}
    user = g.get("current_user")
    if user is not None:
        tags["user_id"] = getattr(user, "id", None)
    return {key: value for key, value in tags.items() if value}


def _statement_params(context: Any, parameters: Any, executemany: bool) -> Any:
    compiled = getattr(context, "compiled_parameters", None)
    if compiled:
        return compiled if executemany else compiled[0]
    return parameters


def register_query_timing(engine: Engine) -> None:
    """Attach the timing listeners to ``engine`` once."""
    if getattr(engine, "_estoque_timing", False):
        return
    database = engine.url.database

    @event.listens_for(engine, "before_cursor_execute")
    def _start(conn, cursor, statement, parameters, context, executemany):
        starts: List[float] = conn.info.setdefault("estoque_query_start", [])
        starts.append(time.perf_counter())

    @event.listens_for(engine, "after_cursor_execute")
    def _finish(conn, cursor, statement, parameters, context, executemany):
        starts = conn.info.get("estoque_query_start")
        if not starts:
            return
        duration_ms = round((time.perf_counter() - starts.pop()) * 1000.0, 2)

        if _debug_timing:
            logger.debug(
                f"Query executed in {duration_ms:.2f}ms",
                extra={"context": {"sql": _truncate(statement, STATEMENT_LIMIT), "duration_ms": duration_ms}},
            )
        if not get_slow_query_alerts_enabled() or duration_ms < get_slow_query_threshold_ms():
            return
        logger.warning(
            "Slow query detected",
            extra={
                "context": {
                    "alert_type": "slow_query",
                    "duration_ms": duration_ms,
                    "threshold_ms": get_slow_query_threshold_ms(),
                    "database": database,
                    "sql": _truncate(statement or "", STATEMENT_LIMIT),
                    "params": mask_params(_statement_params(context, parameters, executemany)),
                    **_request_tags(),
                }
            },
        )

    engine._estoque_timing = True
