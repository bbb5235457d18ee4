"""Flask application factory for the DevPulse freelancer API."""
import logging
import os

from flask import Flask, jsonify, request
from sqlalchemy.engine.url import make_url
from werkzeug.exceptions import HTTPException

from .config import DevelopmentConfig, ProductionConfig
from .errors import ApiError
from .extensions import db, enforce_sqlite_foreign_keys
from .routes import BLUEPRINTS
from .services.notifier import InProcessBroadcaster
from .services.project_service import ProjectService


def create_app(config_object=None):
    """Application factory to create configured Flask app instances."""
    app = Flask(__name__, instance_relative_config=True)

    # Ensure instance folder exists for SQLite
    os.makedirs(app.instance_path, exist_ok=True)

    _configure_app(app, config_object)
    _configure_logging(app)
    _register_extensions(app)
    _register_services(app)
    _register_blueprints(app)
    _register_shellcontext(app)
    _register_security_headers(app)
    _register_error_handlers(app)
    _setup_db(app)

    return app


def _configure_app(app, config_object=None):
    env = os.environ.get("FLASK_ENV") or os.environ.get("APP_ENV") or "development"
    if config_object:
        app.config.from_object(config_object)
    elif env.lower() == "production":
        app.config.from_object(ProductionConfig)
    else:
        app.config.from_object(DevelopmentConfig)
    app.json.sort_keys = app.config.get("JSON_SORT_KEYS", False)


def _configure_logging(app):
    level = str(app.config.get("LOG_LEVEL") or "INFO").upper()
    app.logger.setLevel(getattr(logging, level, logging.INFO))


def _register_extensions(app):
    db.init_app(app)


def _register_services(app):
    broadcaster = InProcessBroadcaster(app.logger)
    app.extensions["realtime"] = broadcaster
    app.extensions["project_service"] = ProjectService(broadcaster)


def _register_blueprints(app):
    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint)


def _register_shellcontext(app):
    @app.shell_context_processor
    def make_shell_context():
        from .models import (  # noqa: WPS433
            Client,
            GitHubStats,
            Invoice,
            InvoiceItem,
            InvoiceStatus,
            Project,
            ProjectStatus,
            Task,
            TaskPriority,
            TaskStatus,
            User,
        )

        return {
            "db": db,
            "User": User,
            "Client": Client,
            "Project": Project,
            "ProjectStatus": ProjectStatus,
            "Task": Task,
            "TaskStatus": TaskStatus,
            "TaskPriority": TaskPriority,
            "Invoice": Invoice,
            "InvoiceItem": InvoiceItem,
            "InvoiceStatus": InvoiceStatus,
            "GitHubStats": GitHubStats,
        }


def _setup_db(app):
    with app.app_context():
        # Import models to ensure metadata is loaded before table creation
        from . import models  # noqa: WPS433

        # Auto-create SQLite database file and parent directory when missing
        database_uri = app.config.get("SQLALCHEMY_DATABASE_URI", "")
        try:
            url = make_url(database_uri)
        except Exception:
            url = None

        enforce_sqlite_foreign_keys(db.engine)

        if url and url.drivername.startswith("sqlite") and url.database:
            db_dir = os.path.dirname(url.database)
            if db_dir:
                os.makedirs(db_dir, exist_ok=True)
            if not os.path.exists(url.database):
                app.logger.info("Initializing SQLite database at %s", url.database)

        db.create_all()


def _register_security_headers(app):
    @app.after_request
    def add_security_headers(response):
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("Referrer-Policy", "strict-origin-when-cross-origin")
        if app.config.get("ENV") == "production":
            response.headers.setdefault("Strict-Transport-Security", "max-age=63072000; includeSubDomains")

        origin = request.headers.get("Origin")
        if origin and origin.rstrip("/") == app.config.get("FRONTEND_URL"):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, PATCH, DELETE, OPTIONS"
            response.headers.add("Vary", "Origin")
        return response


def _register_error_handlers(app):
    def _handle_api_error(error: ApiError):
        db.session.rollback()
        if error.status_code >= 500:
            app.logger.error("%s %s failed: %s", request.method, request.path, error.message)
        return jsonify(error.to_dict()), error.status_code

    def _handle_http_error(error: HTTPException):
        db.session.rollback()
        payload = {"success": False, "message": error.description or error.name}
        return jsonify(payload), error.code or 500

    def _handle_unexpected(error: Exception):
        db.session.rollback()
        app.logger.exception("Unhandled exception on %s %s", request.method, request.path, exc_info=error)
        return jsonify({"success": False, "message": "Internal server error"}), 500

    app.register_error_handler(ApiError, _handle_api_error)
    app.register_error_handler(HTTPException, _handle_http_error)
    app.register_error_handler(Exception, _handle_unexpected)
