"""Application factory for the e-Estoque API."""

import logging
import os
import sys
from datetime import datetime, timezone

from dotenv import load_dotenv
from flask import Flask, jsonify

from estoque import __version__

# An explicit DATABASE_URL wins over whatever a local .env file says
if not os.getenv("DATABASE_URL"):
    load_dotenv()

logger = logging.getLogger(__name__)

SERVICE_NAME = "e-Estoque API"
DEV_SECRET = "dev-secret-change-me"
KNOWN_WEAK_SECRETS = {DEV_SECRET, "dev-jwt-secret-change-me", "changeme", "secret"}
SENTRY_TRACES_SAMPLE_RATE = 0.1


def _running_under_tests(app: Flask) -> bool:
    from estoque.core.config import is_test_mode

    return (
        is_test_mode()
        or bool(app.config.get("TESTING"))
        or "pytest" in sys.modules
        or bool(os.getenv("PYTEST_CURRENT_TEST"))
    )


def _init_sentry(env: str) -> None:
    dsn = os.getenv("SENTRY_DSN")
    if not dsn:
        logger.debug("SENTRY_DSN unset; error reporting stays local")
        return

    import sentry_sdk
    from sentry_sdk.integrations.flask import FlaskIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=dsn,
        environment=env,
        release=os.getenv("GIT_SHA", __version__),
        integrations=[FlaskIntegration(), SqlalchemyIntegration()],
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        send_default_pii=False,
    )
    logger.info(
        "Sentry enabled",
        extra={"context": {"environment": env, "traces_sample_rate": SENTRY_TRACES_SAMPLE_RATE}},
    )


def _exempt_metrics_endpoint(app: Flask) -> None:
    from estoque.core.limiter_config import limiter

    # Scrapers poll from one address; the default limits would throttle them
    for rule in app.url_map.iter_rules():
        if rule.rule == "/metrics":
            limiter.exempt(app.view_functions[rule.endpoint])


def _init_metrics(app: Flask, env: str, testing: bool) -> None:
    from prometheus_client import REGISTRY, CollectorRegistry
    from prometheus_flask_exporter import PrometheusMetrics

    # Factories run once per test; a shared registry would reject the second app
    registry = CollectorRegistry(auto_describe=True) if testing else REGISTRY
    metrics = PrometheusMetrics(app, registry=registry, group_by="url_rule")
    _exempt_metrics_endpoint(app)
    try:
        metrics.info("estoque_build_info", "e-Estoque build", version=__version__, environment=env)
    except ValueError:
        logger.debug("estoque_build_info already registered")


def _init_rate_limiting(app: Flask, testing: bool) -> None:
    from estoque.core.limiter_config import limiter

    app.config["RATELIMIT_STORAGE_URI"] = os.getenv("LIMITER_STORAGE_URI", "memory://")
    limiter.init_app(app)
    if testing and os.getenv("RATE_LIMIT_ENABLED", "1") == "0":
        limiter.enabled = False
        logger.debug("Rate limiting off under tests")


def _harden_for_production(app: Flask) -> None:
    secret = app.config["SECRET_KEY"]
    if secret in KNOWN_WEAK_SECRETS or len(secret) < 32:
        raise ValueError(
            "FLASK_SECRET_KEY must be set to a random value of at least 32 characters in production"
        )

    from flask_talisman import Talisman

    # JSON only: nothing is ever rendered, so every source is denied
    Talisman(
        app,
        content_security_policy={"default-src": ["'none'"]},
        force_https=True,
        strict_transport_security=True,
        strict_transport_security_max_age=63072000,
        strict_transport_security_include_subdomains=True,
        frame_options="DENY",
        referrer_policy="no-referrer",
    )


def _prepare_database() -> None:
    from estoque.db.session import create_tables, get_engine

    try:
        create_tables()
    except Exception as exc:  # noqa: BLE001 - the API still boots and /health reports it
        logger.warning(
            "Schema creation failed at startup",
            extra={"context": {"error": str(exc)}},
            exc_info=True,
        )
        return
    logger.info("Database ready", extra={"context": {"dialect": get_engine().dialect.name}})


def _register_blueprints(app: Flask) -> None:
    from estoque.controllers.category_controller import categories_bp
    from estoque.controllers.company_controller import companies_bp
    from estoque.controllers.health_controller import health_bp
    from estoque.controllers.product_controller import products_bp
    from estoque.controllers.sale_controller import sales_bp
    from estoque.controllers.tax_controller import taxes_bp

    for blueprint in (categories_bp, companies_bp, products_bp, taxes_bp, sales_bp, health_bp):
        app.register_blueprint(blueprint)


def _start_cache_purge(app: Flask) -> None:
    """Schedule the periodic removal of expired OData cache entries."""
    from apscheduler.schedulers.background import BackgroundScheduler
    from apscheduler.triggers.interval import IntervalTrigger

    from estoque.core.config import get_cache_purge_interval_minutes, get_cache_purge_job_enabled
    from estoque.core.odata import odata_cache

    if not get_cache_purge_job_enabled():
        logger.info("Cache purge job disabled (ENABLE_CACHE_PURGE_JOB=false)")
        return

    def purge():
        try:
            removed = odata_cache.purge_expired()
        except Exception:  # noqa: BLE001 - a failed run must not kill the scheduler thread
            logger.exception("Cache purge run failed", extra={"context": {"job": "odata_cache_purge"}})
            return
        logger.info("Cache purge run finished", extra={"context": {"job": "odata_cache_purge", "removed": removed}})

    minutes = get_cache_purge_interval_minutes()
    scheduler = BackgroundScheduler(daemon=True)
    scheduler.add_job(
        purge,
        trigger=IntervalTrigger(minutes=minutes),
        id="odata_cache_purge",
        replace_existing=True,
    )
    scheduler.start()
    app.extensions["estoque_scheduler"] = scheduler
    logger.info("Cache purge scheduled", extra={"context": {"interval_minutes": minutes}})


def create_app() -> Flask:
    env = os.getenv("FLASK_ENV", "development")
    production = env == "production"

    app = Flask(__name__)
    app.config.update(
        SECRET_KEY=os.getenv("FLASK_SECRET_KEY", DEV_SECRET),
        JSON_SORT_KEYS=False,
    )
    app.json.sort_keys = False
    app.url_map.strict_slashes = False
    testing = _running_under_tests(app)
    if testing:
        app.config["TESTING"] = True

    from estoque.core.config import get_login_disabled, log_auth_config, log_odata_config
    from estoque.core.logging_config import setup_logging

    setup_logging(
        app=app,
        log_level=logging.INFO if production else logging.DEBUG,
        enable_sql_echo=not production,
        use_json_format=production,
    )
    log_odata_config()
    log_auth_config()

    _init_sentry(env)
    _init_metrics(app, env, testing)
    _init_rate_limiting(app, testing)
    if production:
        _harden_for_production(app)

    app.config["LOGIN_DISABLED"] = testing and get_login_disabled()

    from estoque.core.error_handlers import register_error_handlers

    register_error_handlers(app)
    _prepare_database()

    @app.get("/")
    def index():
        return jsonify(
            service=SERVICE_NAME,
            version=__version__,
            status="running",
            timestamp=datetime.now(timezone.utc).isoformat(),
        )

    _register_blueprints(app)
    if not testing:
        _start_cache_purge(app)

    logger.info(
        f"{SERVICE_NAME} {__version__} ready",
        extra={"context": {"environment": env, "blueprints": sorted(app.blueprints)}},
    )
    return app
