"""
Logging setup for the e-Estoque API.

Every record passes through :class:`RequestContextFilter`, which stamps it
with the id of the request being served (``-`` outside a request). Console
output is colourised plain text in development and one JSON object per line
in production; the optional log files are always JSON.

Modules log through the standard library and attach structured data with
``extra={"context": {...}}``::

    logger = logging.getLogger(__name__)
    logger.info("Stock reserved", extra={"context": {"product_id": pid, "quantity": 2}})
"""

import json
import logging
import logging.handlers
import os
import sys
import time
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from flask import Flask, g, has_request_context, request

from estoque.core.db import enable_debug_timing

LOG_FILE = "estoque.log"
ERROR_LOG_FILE = "estoque-errors.log"
MAX_LOG_BYTES = 5 * 1024 * 1024
LOG_BACKUPS = 7

_QUIET_LOGGERS = ("werkzeug", "urllib3", "apscheduler")


class RequestContextFilter(logging.Filter):
    """Adds ``request_id`` to every record."""

    def filter(self, record: logging.LogRecord) -> bool:
        request_id = g.get("request_id") if has_request_context() else None
        record.request_id = request_id or "-"
        return True


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: Dict[str, Any] = {
            "ts": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", "-"),
            "msg": record.getMessage(),
            "where": f"{record.module}.{record.funcName}:{record.lineno}",
        }
        context = getattr(record, "context", None)
        if context:
            payload["context"] = context
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False, default=str)


class ConsoleFormatter(logging.Formatter):
    """Coloured level names, with the context dict appended as ``key=value``."""

    LEVEL_COLORS = {
        logging.DEBUG: "\033[2;37m",
        logging.INFO: "\033[34m",
        logging.WARNING: "\033[33m",
        logging.ERROR: "\033[1;31m",
        logging.CRITICAL: "\033[1;41m",
    }
    RESET = "\033[0m"

    def __init__(self) -> None:
        super().__init__(
            "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s",
            datefmt="%H:%M:%S",
        )

    def format(self, record: logging.LogRecord) -> str:
        if not hasattr(record, "request_id"):
            record.request_id = "-"
        saved = record.levelname
        color = self.LEVEL_COLORS.get(record.levelno, "")
        record.levelname = f"{color}{saved:<8}{self.RESET}"
        try:
            line = super().format(record)
        finally:
            record.levelname = saved
        context = getattr(record, "context", None)
        if context:
            line += " | " + " ".join(f"{key}={value}" for key, value in context.items())
        return line


def _file_handler(path: Path, level: int) -> Optional[logging.Handler]:
    try:
        handler = logging.handlers.RotatingFileHandler(
            path, maxBytes=MAX_LOG_BYTES, backupCount=LOG_BACKUPS, encoding="utf-8"
        )
    except OSError as exc:
        logging.getLogger("estoque.logging").warning(
            "Cannot open log file, keeping console output only",
            extra={"context": {"path": str(path), "error": str(exc)}},
        )
        return None
    handler.setLevel(level)
    handler.setFormatter(JSONFormatter())
    handler.addFilter(RequestContextFilter())
    return handler


def _resolve_level(log_level: Union[int, str]) -> int:
    if isinstance(log_level, int):
        return log_level
    level = getattr(logging, str(log_level).upper(), None)
    return level if isinstance(level, int) else logging.INFO


def _register_request_logging(app: Flask) -> None:
    access = logging.getLogger("estoque.access")

    @app.before_request
    def _begin_request():
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex
        g.request_started = time.perf_counter()
        g.route = request.url_rule.rule if request.url_rule is not None else request.path
        access.debug(
            f"--> {request.method} {request.full_path.rstrip('?')}",
            extra={"context": {"route": g.route, "remote_addr": request.remote_addr}},
        )

    @app.after_request
    def _end_request(response):
        request_id = g.get("request_id")
        if request_id:
            response.headers["X-Request-ID"] = request_id
        started = g.get("request_started")
        if started is None:
            return response
        elapsed_ms = round((time.perf_counter() - started) * 1000.0, 2)
        user = g.get("current_user")
        access.info(
            f"<-- {request.method} {request.path} {response.status_code} ({elapsed_ms}ms)",
            extra={
                "context": {
                    "status": response.status_code,
                    "elapsed_ms": elapsed_ms,
                    "user_id": getattr(user, "id", None),
                    "user_agent": request.user_agent.string or None,
                }
            },
        )
        return response


def setup_logging(
    app: Optional[Flask] = None,
    log_level: Union[int, str] = "INFO",
    enable_sql_echo: bool = False,
    log_to_file: Optional[bool] = None,
    use_json_format: bool = False,
) -> None:
    """
    Replace the root handlers and, when ``app`` is given, hook request logging.

    Args:
        app: application whose requests get an id and access log lines
        log_level: level name or number for the root logger
        enable_sql_echo: log every statement duration at DEBUG
        log_to_file: write JSON files under LOG_DIR (default: LOG_TO_FILE env, on)
        use_json_format: JSON lines on stdout instead of the coloured format
    """
    level = _resolve_level(log_level)
    if log_to_file is None:
        log_to_file = os.getenv("LOG_TO_FILE", "1") == "1"

    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.setLevel(level)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(level)
    console.setFormatter(JSONFormatter() if use_json_format else ConsoleFormatter())
    console.addFilter(RequestContextFilter())
    root.addHandler(console)

    if log_to_file:
        log_dir = Path(os.getenv("LOG_DIR", Path(__file__).resolve().parents[2] / "logs"))
        handlers: List[Optional[logging.Handler]] = []
        try:
            log_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            root.warning(
                "Cannot create log directory, keeping console output only",
                extra={"context": {"path": str(log_dir), "error": str(exc)}},
            )
        else:
            handlers = [
                _file_handler(log_dir / LOG_FILE, level),
                _file_handler(log_dir / ERROR_LOG_FILE, logging.ERROR),
            ]
        for handler in handlers:
            if handler is not None:
                root.addHandler(handler)

    enable_debug_timing(enable_sql_echo)

    if app is not None:
        _register_request_logging(app)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("estoque").debug(
        "Logging ready",
        extra={
            "context": {
                "level": logging.getLevelName(level),
                "sql_timing": enable_sql_echo,
                "files": bool(log_to_file),
                "json": use_json_format,
            }
        },
    )
