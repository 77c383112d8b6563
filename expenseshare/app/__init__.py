"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time, so tests can build isolated
         app instances and Alembic can import the models without a server.

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Configure logging from LOG_LEVEL
  3. Initialise extensions (SQLAlchemy, Marshmallow) via init_app()
  4. Register all route blueprints under /api/v1
  5. Register global error handlers: the ONLY place where a domain error
     class is turned into an HTTP status code (HTTP_STATUS_BY_ERROR)
  6. Serialise Decimal as string in every JSON response
"""

from __future__ import annotations

import logging
import traceback
from decimal import Decimal

from flask import Flask, jsonify, request
from flask.json.provider import DefaultJSONProvider
from marshmallow import ValidationError as SchemaValidationError

from expenseshare.config import config_by_name, validate_production_config
from expenseshare.app.errors import (
    AppError,
    ConflictError,
    ErrorCode,
    ForbiddenError,
    InvalidStateError,
    NotFoundError,
    UnauthorizedError,
    ValidationError,
)


# Service-layer errors carry no HTTP knowledge; this table is the mapping.
# Anything not listed (including a bare AppError) is an internal error.
HTTP_STATUS_BY_ERROR: dict[type[AppError], int] = {
    ValidationError:   400,
    NotFoundError:     404,
    InvalidStateError: 400,
    ConflictError:     409,
    UnauthorizedError: 401,
    ForbiddenError:    403,
}


def http_status_for(error: AppError) -> int:
    for error_cls in type(error).__mro__:
        if error_cls in HTTP_STATUS_BY_ERROR:
            return HTTP_STATUS_BY_ERROR[error_cls]
    return 500


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

def create_app(config_name: str = "development") -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
    """
    app = Flask(__name__)
    app.json_provider_class = DecimalJSONProvider
    app.json = DecimalJSONProvider(app)

    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    _configure_logging(app)

    # Import here (not at module top) to avoid circular imports.
    from expenseshare.app.extensions import db, ma
    db.init_app(app)
    ma.init_app(app)

    # Populate SQLAlchemy's MetaData for create_all() and Alembic.
    with app.app_context():
        from expenseshare.app.models import (  # noqa: F401
            expense,
            group,
            ledger_entry,
            membership,
            user,
        )

    _register_blueprints(app)
    _register_error_handlers(app)
    _register_cors(app)

    return app


def _configure_logging(app: Flask) -> None:
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO
    app.logger.setLevel(level)
    # Service modules log under "expenseshare.*"; route them to the same level.
    logging.getLogger("expenseshare").setLevel(level)


def _register_blueprints(app: Flask) -> None:
    from expenseshare.app.routes.auth import auth_bp
    from expenseshare.app.routes.expenses import expenses_bp
    from expenseshare.app.routes.groups import groups_bp
    from expenseshare.app.routes.users import users_bp

    app.register_blueprint(auth_bp,     url_prefix="/api/v1/auth")
    app.register_blueprint(users_bp,    url_prefix="/api/v1/users")
    app.register_blueprint(groups_bp,   url_prefix="/api/v1/groups")
    # expenses_bp owns both /groups/<id>/expenses and /expenses/<id>.
    app.register_blueprint(expenses_bp, url_prefix="/api/v1")


def _register_error_handlers(app: Flask) -> None:
    """
    Handlers:
      AppError            → error envelope, status from HTTP_STATUS_BY_ERROR
      marshmallow errors  → 400 MISSING_FIELD / INVALID_FIELD
      Exception           → generic 500; traceback logged, never returned
    """

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        status = http_status_for(error)
        if status == 500:
            app.logger.error("Internal application error: %r", error)
            return _internal_error_response()
        return jsonify(error.to_dict()), status

    @app.errorhandler(SchemaValidationError)
    def handle_schema_error(error: SchemaValidationError):
        """Returns the FIRST field error only: one error, not many."""
        messages = error.messages

        field = None
        raw_message = "Invalid input."
        if isinstance(messages, dict):
            for field_name, field_errors in messages.items():
                field = field_name if field_name != "_schema" else None
                if isinstance(field_errors, list):
                    raw_message = str(field_errors[0]) if field_errors else "Invalid value."
                else:
                    raw_message = str(field_errors)
                break
        elif isinstance(messages, list) and messages:
            raw_message = str(messages[0])

        code = (
            ErrorCode.MISSING_FIELD
            if raw_message.startswith("Missing data for required field")
            else ErrorCode.INVALID_FIELD
        )

        body = {"error": {"code": code, "message": raw_message}}
        if field is not None:
            body["error"]["field"] = field
        return jsonify(body), 400

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        # Let Flask's own HTTP errors (404 on unknown URL, 405, ...) through.
        from werkzeug.exceptions import HTTPException
        if isinstance(error, HTTPException):
            return error

        app.logger.error(
            "Unhandled exception: %s\n%s",
            str(error),
            traceback.format_exc(),
        )
        return _internal_error_response()


def _internal_error_response():
    return jsonify({
        "error": {
            "code": ErrorCode.INTERNAL_ERROR,
            "message": "An unexpected error occurred. Please try again later.",
        }
    }), 500


def _register_cors(app: Flask) -> None:
    """
    Adds CORS headers for browser-based local development when DEBUG or
    TESTING is on.
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
