"""
WorkTrack: multi-tenant work tracking API.

Usage:
    from worktrack import create_app
    app = create_app()           # APP_ENV, or "development"
    app = create_app("testing")
"""

import logging
import os

from flask import Flask, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as _sa_engine
from sqlalchemy import event as _sa_event

from worktrack.config import config
from worktrack.middleware.jwt_auth import init_jwt_middleware
from worktrack.middleware.logging_config import configure_logging
from worktrack.middleware.rate_limiter import init_rate_limits
from worktrack.middleware.timing import init_request_timing
from worktrack.models import db

logger = logging.getLogger(__name__)


@_sa_event.listens_for(_sa_engine.Engine, "connect")
def _enable_sqlite_fk(dbapi_conn, connection_record):
    """Enable foreign key enforcement for SQLite connections."""
    if "sqlite" in type(dbapi_conn).__module__:
        # pysqlite's implicit BEGIN breaks SAVEPOINT; SQLAlchemy emits BEGIN itself.
        dbapi_conn.isolation_level = None
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


@_sa_event.listens_for(_sa_engine.Engine, "begin")
def _sqlite_begin(conn):
    if conn.dialect.name == "sqlite":
        conn.exec_driver_sql("BEGIN")


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],  # per-blueprint, see middleware/rate_limiter.py
    storage_uri=os.getenv("REDIS_URL") or "memory://",
)


def create_app(config_name=None):
    """Create and configure the Flask application.

    Args:
        config_name: "development", "testing" or "production". Defaults to
            the APP_ENV env var, or "development" if unset.
    """
    if config_name is None:
        config_name = os.getenv("APP_ENV", "development")

    app = Flask(__name__, instance_relative_config=True)
    config_cls = config[config_name]
    # ProductionConfig validates its environment on instantiation
    app.config.from_object(config_cls() if config_name == "production" else config_cls)

    configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    cors_origins = app.config.get("CORS_ORIGINS", "*")
    if cors_origins and cors_origins != "*":
        CORS(app, origins=[o.strip() for o in cors_origins.split(",") if o.strip()])
    else:
        CORS(app)

    init_request_timing(app)
    init_jwt_middleware(app)

    # Import all models so create_all and Alembic see them
    from worktrack.models import activity_log as _activity_log_models  # noqa: F401
    from worktrack.models import board as _board_models  # noqa: F401
    from worktrack.models import comment as _comment_models  # noqa: F401
    from worktrack.models import company as _company_models  # noqa: F401
    from worktrack.models import file_ticket as _file_ticket_models  # noqa: F401
    from worktrack.models import project as _project_models  # noqa: F401
    from worktrack.models import sprint as _sprint_models  # noqa: F401
    from worktrack.models import user as _user_models  # noqa: F401
    from worktrack.models import work_item as _work_item_models  # noqa: F401
    from worktrack.models import workflow as _workflow_models  # noqa: F401

    with app.app_context():
        if app.config["SQLALCHEMY_DATABASE_URI"].startswith("sqlite:///") and not app.config.get("TESTING"):
            os.makedirs(app.instance_path, exist_ok=True)
        db.create_all()
        app.logger.debug("db.create_all() completed")

    from worktrack.blueprints import register_blueprints
    register_blueprints(app)

    @app.route("/api/v1/health")
    def health():
        return {"status": "ok", "app": "worktrack"}

    @app.errorhandler(404)
    def not_found(e):
        if request.path.startswith("/api/"):
            return {"error": "Not found", "code": "ERR_NOT_FOUND", "path": request.path}, 404
        return e

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": "Method not allowed"}, 405

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("500 error on %s", request.path, exc_info=True)
        return {"error": "Internal server error", "code": "ERR_INTERNAL"}, 500

    init_rate_limits(app, limiter)
    return app
