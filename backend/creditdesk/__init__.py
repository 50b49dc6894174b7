# backend/creditdesk/__init__.py
from flask import Flask, request
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .config import Config
from .errors import CreditDeskError, StorageError
from .extensions import db, migrate
from .responses import error


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    from .services.qr_service import QRCodeGenerator
    app.extensions["creditdesk.qr"] = QRCodeGenerator(app.config["RECEIPT_VERIFY_URL"])

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.agencies import agencies_bp
    from .routes.receipts import receipts_bp, verify_bp
    from .routes.reports import analytics_bp, stats_bp
    from .routes.exports import exports_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(agencies_bp)
    app.register_blueprint(receipts_bp)
    app.register_blueprint(verify_bp)
    app.register_blueprint(analytics_bp)
    app.register_blueprint(stats_bp)
    app.register_blueprint(exports_bp)

    register_error_handlers(app)

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        if origin in app.config["CORS_ALLOWED_ORIGINS"]:
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"
            response.headers["Access-Control-Allow-Methods"] = "GET,POST,PUT,DELETE,OPTIONS"
        return response

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app


def register_error_handlers(app: Flask) -> None:
    """Every error leaves the API as {"status": "error", "message": ...}."""

    @app.errorhandler(CreditDeskError)
    def handle_domain_error(exc: CreditDeskError):
        if exc.status_code >= 500:
            app.logger.error("%s: %s", type(exc).__name__, exc.message, exc_info=exc.__cause__)
        return error(exc.client_message(), exc.status_code)

    @app.errorhandler(SQLAlchemyError)
    def handle_storage_error(exc: SQLAlchemyError):
        db.session.rollback()
        app.logger.exception("Unhandled storage error")
        return error(StorageError.public_message, StorageError.status_code)

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        return error(exc.description or exc.name, exc.code or 500)

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        app.logger.exception("Unhandled error")
        return error("Internal server error", 500)
