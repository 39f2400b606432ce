# backend/retail_ledger/__init__.py
import logging

from flask import Flask, jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from .config import Config
from .errors import ErrorKind, LedgerError
from .extensions import db, migrate


def create_app(config_overrides: dict | None = None) -> Flask:
    app = Flask(__name__, instance_relative_config=True)
    app.config.from_object(Config)
    if config_overrides:
        app.config.update(config_overrides)

    app.logger.setLevel(app.config.get("LOG_LEVEL", "INFO"))
    logging.getLogger("retail_ledger").setLevel(app.config.get("LOG_LEVEL", "INFO"))

    # Initialize extensions
    db.init_app(app)
    migrate.init_app(app, db)

    # Import models so Alembic can discover metadata reliably
    from . import models  # noqa: F401

    # Ledger services are built once and shared by every request
    from .services.registry import build_services
    build_services(app)

    # Register blueprints
    from .routes.system import system_bp
    from .routes.auth import auth_bp
    from .routes.products import products_bp
    from .routes.sales import sales_bp
    from .routes.inventory import inventory_bp
    from .routes.logs import logs_bp

    app.register_blueprint(system_bp)
    app.register_blueprint(auth_bp)
    app.register_blueprint(products_bp)
    app.register_blueprint(sales_bp)
    app.register_blueprint(inventory_bp)
    app.register_blueprint(logs_bp)

    register_error_handlers(app)

    # Register CLI commands
    from .cli import register_commands
    register_commands(app)

    return app


def register_error_handlers(app: Flask) -> None:
    """
    One translation point from service errors to HTTP responses.

    LedgerError is answered by its kind; anything else is INTERNAL, with the
    exception text exposed only when EXPOSE_ERROR_DETAILS is on.
    """

    @app.errorhandler(LedgerError)
    def handle_ledger_error(error: LedgerError):
        db.session.rollback()
        if error.kind == ErrorKind.INTERNAL:
            app.logger.error("Ledger internal error: %s", error.message)
        return jsonify(error.to_dict()), error.kind.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        return jsonify({"error": error.name.upper().replace(" ", "_"), "message": error.description}), error.code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(error: SQLAlchemyError):
        db.session.rollback()
        app.logger.exception("Database error")
        return _internal_error(app, error)

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        db.session.rollback()
        app.logger.exception("Unhandled error")
        return _internal_error(app, error)


def _internal_error(app: Flask, error: Exception):
    body = {"error": ErrorKind.INTERNAL.value, "message": "Internal server error"}
    if app.config.get("EXPOSE_ERROR_DETAILS"):
        body["details"] = {"exception": type(error).__name__, "detail": str(error)}
    return jsonify(body), ErrorKind.INTERNAL.status_code
