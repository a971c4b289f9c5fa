"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time — this enables:
           - Multiple isolated test app instances
           - Clean separation between app creation and app startup
           - `flask --app backend.app seed-demo` without starting the server

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Configure logging (LOG_LEVEL) for app.logger and the backend.app loggers
  3. Initialise extensions (SQLAlchemy, Marshmallow) via init_app()
  4. Register all route blueprints under /api/v1
  5. Register global error handlers (AppError, ValidationError,
     SQLAlchemyError → 503, Exception → 500)
  6. Register a custom JSON provider to serialise Decimal as string
  7. Register the seed-demo / clear-data CLI commands

Note on model imports:
  All model classes are imported inside create_app() so that SQLAlchemy's
  metadata is populated before db.create_all() or Alembic inspects it.
"""

from __future__ import annotations

import logging
import os
import traceback
from decimal import Decimal

from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from flask.logging import default_handler
from marshmallow import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from backend.config import config_by_name, validate_production_config


# ── Custom JSON provider ───────────────────────────────────────────────────
# Flask's default JSON encoder does not handle Decimal.
# All monetary amounts are serialised as strings to preserve precision.

class DecimalJSONProvider(DefaultJSONProvider):
    """
    Extends Flask's default JSON provider to serialise Decimal as str.

    Example: Decimal("10.50") → "10.50" (not 10.5 or 10.500000001)
    """

    def default(self, o):
        if isinstance(o, Decimal):
            return str(o)
        return super().default(o)


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str | None = None) -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Falls back to the FLASK_ENV environment variable, then
                     "development". Resolved via config_by_name in config.py.
    """
    config_name = config_name or os.getenv("FLASK_ENV", "development")

    app = Flask(__name__)
    app.json_provider_class = DecimalJSONProvider
    app.json = DecimalJSONProvider(app)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    _configure_logging(app)

    # ── Extensions ─────────────────────────────────────────────────────────
    # Import here (not at module top) to avoid circular imports.
    from backend.app.extensions import db, ma
    db.init_app(app)
    ma.init_app(app)

    # ── Model registration ─────────────────────────────────────────────────
    # Import all models so that SQLAlchemy's MetaData is populated.
    with app.app_context():
        from backend.app.models import (  # noqa: F401
            bill,
            bill_item,
            bill_participant,
            item_claim,
            membership,
            trip,
            user,
        )

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_cors(app)

    from backend.app.cli import register_commands
    register_commands(app)

    return app


def _configure_logging(app: Flask) -> None:
    """
    Routes service-module loggers (logging.getLogger(__name__) under
    backend.app) through Flask's default stderr handler at LOG_LEVEL.
    """
    level = getattr(logging, str(app.config.get("LOG_LEVEL", "INFO")).upper(), logging.INFO)
    app.logger.setLevel(level)

    package_logger = logging.getLogger("backend.app")
    package_logger.setLevel(level)
    if default_handler not in package_logger.handlers:
        package_logger.addHandler(default_handler)


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints under the /api/v1 prefix.

    bills_bp and items_bp are registered at /api/v1 (not /api/v1/bills)
    because each owns both parent-scoped paths (/trips/<id>/bills,
    /bills/<id>/items) and ID paths (/bills/<id>, /items/<id>).
    """
    from backend.app.routes.bills import bills_bp
    from backend.app.routes.health import health_bp
    from backend.app.routes.identity import identity_bp
    from backend.app.routes.items import items_bp
    from backend.app.routes.trips import trips_bp

    app.register_blueprint(trips_bp,    url_prefix="/api/v1/trips")
    app.register_blueprint(bills_bp,    url_prefix="/api/v1")
    app.register_blueprint(items_bp,    url_prefix="/api/v1")
    app.register_blueprint(identity_bp, url_prefix="/api/v1")
    app.register_blueprint(health_bp,   url_prefix="/api/v1")


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError        → structured JSON error envelope with the correct HTTP status
      ValidationError → marshmallow schema errors formatted as MISSING_FIELD /
                        INVALID_FIELD (or a registered code) responses (400)
      SQLAlchemyError → session rolled back, STORAGE_ERROR (503); not retried
      Exception       → generic INTERNAL_ERROR (500); full traceback logged

    Stack traces never leave the server.
    """
    from backend.app.errors import AppError, ErrorCode, StorageError
    from backend.app.extensions import db

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """
        Converts an AppError raised anywhere in the request lifecycle
        (middleware, service, route) into the standard error envelope.

        Nothing was committed for the failed mutation; drop whatever the
        service had flushed.
        """
        db.session.rollback()
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        Converts marshmallow ValidationError into the standard error envelope.

        Only the FIRST error is returned. If its message is a registered
        ErrorCode constant, that code is used directly; otherwise
        MISSING_FIELD or INVALID_FIELD.
        """
        messages = error.messages  # e.g. {"total_amount": ["INVALID_AMOUNT_PRECISION"]}

        field = None
        raw_message = "Invalid input."

        if isinstance(messages, dict):
            for field_name, field_errors in messages.items():
                field = field_name if field_name != "_schema" else None
                if isinstance(field_errors, list):
                    raw_message = field_errors[0] if field_errors else "Invalid value."
                else:
                    raw_message = str(field_errors)
                break
        elif isinstance(messages, list):
            raw_message = messages[0] if messages else "Invalid input."

        known_codes = vars(ErrorCode).values()
        if raw_message in known_codes:
            code = raw_message
            message = _code_to_message(code)
        elif str(raw_message).startswith("Missing data for required field"):
            code = ErrorCode.MISSING_FIELD
            message = raw_message
        else:
            code = ErrorCode.INVALID_FIELD
            message = raw_message

        response_body = {"error": {"code": code, "message": message}}
        if field is not None:
            response_body["error"]["field"] = field

        return jsonify(response_body), 400

    @app.errorhandler(SQLAlchemyError)
    def handle_storage_error(error: SQLAlchemyError):
        db.session.rollback()
        app.logger.error(
            "Storage failure: %s\n%s",
            str(error),
            traceback.format_exc(),
        )
        storage_error = StorageError()
        return jsonify(storage_error.to_dict()), storage_error.http_status

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        """
        Catches all unhandled exceptions and returns a generic 500 response.
        The full traceback is logged to the application logger.
        Werkzeug HTTP errors (unknown route, wrong method) pass through as-is.
        """
        if isinstance(error, HTTPException):
            return error
        app.logger.error(
            "Unhandled exception: %s\n%s",
            str(error),
            traceback.format_exc(),
        )
        return jsonify({
            "error": {
                "code": ErrorCode.INTERNAL_ERROR,
                "message": "An unexpected error occurred. Please try again later.",
            }
        }), 500


def _register_cors(app: Flask) -> None:
    """
    Adds CORS headers for browser-based local development.

    Enabled when DEBUG or TESTING is true so a frontend served from another
    local port can call the API with Authorization headers.
    """

    @app.after_request
    def add_cors_headers(response):
        origin = request.headers.get("Origin")
        allow_all = bool(app.config.get("DEBUG") or app.config.get("TESTING"))

        if allow_all:
            response.headers["Access-Control-Allow-Origin"] = origin if origin else "*"
            response.headers["Vary"] = "Origin"
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, PUT, DELETE, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Authorization, Content-Type"

        return response


def _code_to_message(code: str) -> str:
    """
    Returns a human-readable default message for a known error code.
    Used when a ValidationError message IS the error code constant itself
    (e.g. INVALID_AMOUNT_PRECISION raised as ValidationError in schemas).
    """
    _messages = {
        "INVALID_AMOUNT": "Amount must be a decimal number from 0 to 9999999999.99.",
        "INVALID_AMOUNT_PRECISION": "Amount must have at most 2 decimal places.",
        "INVALID_QUANTITY": "quantity must be an integer from 1 to 2147483647.",
        "INVALID_BILL_TYPE": "bill_type must be 'even' or 'itemized'.",
    }
    return _messages.get(code, "Invalid input.")
