import logging
from datetime import timedelta

from dotenv import load_dotenv
from flask import Flask, request, session
from sqlalchemy import inspect as sa_inspect

from app.doctrack.auth import LoginRateLimiter, bp as auth_bp, load_current_user
from app.doctrack.config import load_config
from app.doctrack.db import teardown_db_session
from app.doctrack.errors import ValidationFailed, register_error_handlers
from app.doctrack.modules.analytics.api import bp as analytics_bp
from app.doctrack.modules.departments.api import bp as departments_bp
from app.doctrack.modules.departments.service import seed_default_departments
from app.doctrack.modules.document_types.api import bp as document_types_bp
from app.doctrack.modules.documents.api import bp as documents_bp
from app.doctrack.routes import bp as routes_bp
from app.doctrack.security import CSRF_HEADER, ensure_csrf_token, validate_csrf
from app.doctrack.store import app_store, init_store

REQUIRED_TABLES = ("users", "departments", "document_types", "documents", "document_history", "audit_events")


def _configure_logging(app: Flask) -> None:
    level = app.config.get("LOG_LEVEL") or "INFO"
    if not logging.getLogger().handlers:
        logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    logging.getLogger("app.doctrack").setLevel(level)
    app.logger.setLevel(level)


def _missing_tables(app: Flask) -> list[str]:
    engine = app.extensions.get("sqlalchemy_engine")
    if engine is None:
        return []
    insp = sa_inspect(engine)
    return [t for t in REQUIRED_TABLES if not insp.has_table(t)]


def _seed_on_boot(app: Flask) -> None:
    """Seed default departments when the store is empty. Skipped until migrations have run."""
    missing = _missing_tables(app)
    if missing:
        app.logger.warning("DB schema not initialized; run `alembic upgrade head`. Missing: %s", ", ".join(missing))
        return
    with app_store(app) as store:
        seed_default_departments(store)


def create_app() -> Flask:
    load_dotenv()
    app = Flask(__name__)
    app.config.from_mapping(load_config())
    app.config["PERMANENT_SESSION_LIFETIME"] = timedelta(hours=24)
    app.config["SESSION_REFRESH_EACH_REQUEST"] = True
    _configure_logging(app)

    # Production guardrails (fail fast with clear logs)
    env = (app.config.get("ENV") or "").strip().lower()
    if env in ("prod", "production"):
        if app.config.get("STORE_BACKEND") == "sql" and str(app.config["DATABASE_URL"]).startswith("sqlite"):
            raise RuntimeError("DATABASE_URL must be Postgres in production (not sqlite).")
        if not app.config.get("SECRET_KEY") or str(app.config["SECRET_KEY"]) in ("", "change-me"):
            raise RuntimeError("SECRET_KEY must be set to a strong value in production (not default).")

    init_store(app)
    app.extensions["login_rate_limiter"] = LoginRateLimiter()
    register_error_handlers(app)

    app.register_blueprint(routes_bp)
    app.register_blueprint(auth_bp, url_prefix="/api")
    app.register_blueprint(departments_bp, url_prefix="/api/departments")
    app.register_blueprint(document_types_bp, url_prefix="/api/document-types")
    app.register_blueprint(documents_bp, url_prefix="/api/documents")
    app.register_blueprint(analytics_bp, url_prefix="/api/analytics")

    app.before_request(load_current_user)

    @app.before_request
    def _csrf_guard():
        if not app.config.get("CSRF_ENABLED"):
            return None
        if request.method not in ("POST", "PUT", "PATCH", "DELETE"):
            return None
        # Only authenticated sessions can be ridden; auth endpoints establish or end them.
        if not session.get("user_id") or (request.endpoint or "").startswith("auth."):
            return None
        if not validate_csrf(request):
            raise ValidationFailed("CSRF token missing or invalid.")
        return None

    @app.after_request
    def _expose_csrf_token(response):
        if app.config.get("CSRF_ENABLED") and not request.path.startswith(("/health", "/healthz")):
            response.headers[CSRF_HEADER] = ensure_csrf_token()
        return response

    app.teardown_appcontext(teardown_db_session)

    _seed_on_boot(app)

    logging.getLogger(__name__).info("create_app() complete; store=%s", app.extensions["store_backend"])
    return app
