"""
Municipal Project Management System
Flask Application Factory.

Usage:
    from app import create_app
    app = create_app()           # APP_ENV, else "development"
    app = create_app("testing")  # explicit config
"""

import importlib
import logging
import os

import click
from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from app.auth import init_auth
from app.config import config
from app.middleware.logging_config import configure_logging
from app.middleware.rate_limiter import init_rate_limits
from app.middleware.timing import init_request_timing
from app.models import db

logger = logging.getLogger(__name__)


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """SQLite ignores FOREIGN KEY clauses unless asked per connection."""
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],                     # per-blueprint limits only
    storage_uri=os.getenv("REDIS_URL", "memory://"),
)

# (module, attribute) in registration order
BLUEPRINTS = [
    ("app.blueprints.health_bp", "health_bp"),
    ("app.blueprints.auth_bp", "auth_bp"),
    ("app.blueprints.admin_bp", "admin_bp"),
    ("app.blueprints.master_data_bp", "master_data_bp"),
    ("app.blueprints.program_bp", "program_bp"),
    ("app.blueprints.approval_bp", "approval_bp"),
    ("app.blueprints.audit_bp", "audit_bp"),
    ("app.blueprints.notification_bp", "notification_bp"),
    ("app.blueprints.dashboard_bp", "dashboard_bp"),
]


def create_app(config_name=None):
    """
    Create and configure the Flask application.

    Args:
        config_name: "development", "testing" or "production".
                     Defaults to the APP_ENV env var, then "development".

    Returns:
        Configured Flask application instance.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(config[config_name]())
    os.makedirs(app.instance_path, exist_ok=True)

    configure_logging(app)
    _init_extensions(app)
    init_auth(app)
    init_request_timing(app)
    _init_schema(app)
    _register_blueprints(app)
    _register_cli(app)
    _register_app_error_handlers(app)
    init_rate_limits(app, limiter)

    logger.info("Application created (config=%s)", config_name)
    return app


def _init_extensions(app):
    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)

    # Credentialed CORS needs an explicit origin list; "*" stays cookie-less.
    origins = app.config.get("CORS_ORIGINS", "*")
    if origins and origins != "*":
        CORS(app, origins=[o.strip() for o in origins.split(",") if o.strip()],
             supports_credentials=True)
    else:
        CORS(app)


def _init_schema(app):
    """Import every model module (Alembic autogenerate sees them) and create missing tables."""
    from app.models import approval, audit, auth, master_data, notification, program  # noqa: F401

    with app.app_context():
        try:
            db.create_all()
        except Exception as e:
            app.logger.warning("db.create_all() failed: %s", e)


def _register_blueprints(app):
    for module_name, attr in BLUEPRINTS:
        app.register_blueprint(getattr(importlib.import_module(module_name), attr))


def _register_cli(app):
    @app.cli.command("seed-demo")
    @click.option("--admin-password", default=None, help="Password for the seeded admin user.")
    def seed_demo_cmd(admin_password):
        """Seed wards, roles, an admin user, the active fiscal year and sample programs."""
        from app.services.seed_service import seed_demo_data

        created = seed_demo_data(admin_password=admin_password)
        db.session.commit()
        click.echo("Seeded: " + ", ".join(f"{k}={v}" for k, v in created.items()))


def _register_app_error_handlers(app):
    """JSON bodies for errors raised outside any blueprint handler."""

    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "code": "ERR_NOT_FOUND", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed", "code": "ERR_METHOD_NOT_ALLOWED"}, 405

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("Unhandled error on %s: %s", request.path, e, exc_info=True)
        return {"error": "Internal server error", "code": "ERR_INTERNAL"}, 500
