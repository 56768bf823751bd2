"""
Nexus Project Hub application factory.

    from app import create_app
    app = create_app()            # APP_ENV, or development when unset
    app = create_app("testing")
"""

import logging
import os

import click
from flask import Flask, abort, request
from flask_cors import CORS
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
from flask_migrate import Migrate
from sqlalchemy import engine as sa_engine, event as sa_event
from sqlalchemy.exc import SQLAlchemyError

from app.config import config
from app.models import db
from app.middleware.identity import init_identity_middleware
from app.middleware.logging_config import configure_logging
from app.middleware.rate_limiter import init_rate_limits
from app.middleware.timing import init_request_timing

logger = logging.getLogger(__name__)

JSON_OR_MULTIPART = ("json", "multipart/form-data")


@sa_event.listens_for(sa_engine.Engine, "connect")
def _sqlite_foreign_keys(dbapi_conn, connection_record):
    # SQLite ignores ON DELETE CASCADE unless asked per connection
    if "sqlite" in type(dbapi_conn).__module__:
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


migrate = Migrate()
limiter = Limiter(
    key_func=get_remote_address,
    default_limits=[],
    storage_uri=os.getenv("REDIS_URL") or "memory://",
)


def create_app(config_name=None):
    config_name = config_name or os.getenv("APP_ENV", "development")
    settings = config[config_name]
    settings.validate()

    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(settings)
    configure_logging(app)

    db.init_app(app)
    migrate.init_app(app, db)
    limiter.init_app(app)
    origins = app.config.get("CORS_ORIGINS") or "*"
    if origins == "*":
        CORS(app)
    else:
        CORS(app, origins=[o.strip() for o in origins.split(",") if o.strip()])

    # timing first so every later hook sees g.request_id
    init_request_timing(app)
    init_identity_middleware(app)
    app.before_request(_require_json_body)

    _create_tables(app)
    if app.config.get("STORAGE_PROVIDER", "local") == "local" and not app.testing:
        os.makedirs(app.config["UPLOAD_FOLDER"], exist_ok=True)

    _register_blueprints(app)
    _register_cli(app)
    _register_app_error_handlers(app)
    init_rate_limits(app, limiter)

    logger.debug("App created: env=%s", config_name)
    return app


def _require_json_body():
    """Mutating API calls with a body must send JSON (or multipart for uploads)."""
    if request.method not in ("POST", "PUT", "PATCH") or not request.path.startswith("/api/"):
        return None
    content_type = request.content_type or ""
    if request.content_length and not any(kind in content_type for kind in JSON_OR_MULTIPART):
        abort(415, description="Content-Type must be application/json")
    return None


def _create_tables(app):
    from app.models import auth, project, task  # noqa: F401  (register tables)

    with app.app_context():
        try:
            db.create_all()
        except SQLAlchemyError as exc:
            # migrations own the schema once they have run; a race here is harmless
            app.logger.warning("create_all skipped: %s", exc)


def _register_blueprints(app):
    from app.blueprints.file_bp import file_bp
    from app.blueprints.health_bp import health_bp
    from app.blueprints.member_bp import member_bp
    from app.blueprints.project_bp import project_bp
    from app.blueprints.task_bp import task_bp
    from app.blueprints.workspace_bp import workspace_bp

    for bp in (health_bp, workspace_bp, project_bp, task_bp, member_bp, file_bp):
        app.register_blueprint(bp)


def _register_cli(app):
    @app.cli.command("seed-default-workspace")
    def seed_default_workspace_cmd():
        """Create the "default" workspace owned by the dev identity."""
        from app.middleware.identity import dev_identity
        from app.services.identity_service import resolve_user
        from app.services.workspace_service import get_or_create_default_workspace

        owner = resolve_user(dev_identity(app))
        ws = get_or_create_default_workspace(owner.id)
        click.echo(f"{ws.slug} {ws.id}")

    @app.cli.command("issue-dev-token")
    def issue_dev_token_cmd():
        """Print a bearer token for the dev identity."""
        from app.services.jwt_service import generate_identity_token

        click.echo(generate_identity_token(
            app.config["DEV_IDENTITY_ID"],
            email=app.config["DEV_IDENTITY_EMAIL"],
            name=app.config["DEV_IDENTITY_NAME"],
        ))


def _register_app_error_handlers(app):
    @app.errorhandler(404)
    def not_found(e):
        return {"error": "Not found", "path": request.path}, 404

    @app.errorhandler(405)
    def method_not_allowed(e):
        return {"error": f"Method {request.method} not allowed"}, 405

    @app.errorhandler(413)
    def too_large(e):
        return {"error": "Request body too large",
                "max_bytes": app.config.get("MAX_CONTENT_LENGTH")}, 413

    @app.errorhandler(415)
    def unsupported_media(e):
        return {"error": e.description}, 415

    @app.errorhandler(429)
    def rate_limited(e):
        return {"error": "Too many requests", "retry_after": e.description}, 429

    @app.errorhandler(500)
    def server_error(e):
        logger.error("Unhandled server error: %s", e, exc_info=True)
        return {"error": "Internal server error"}, 500
