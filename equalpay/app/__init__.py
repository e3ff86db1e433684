"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time, so tests can build isolated
         app instances and Alembic can import the models without a server.

Responsibilities:
  1. Load configuration from config_by_name[config_name]
  2. Configure logging from LOG_LEVEL
  3. Initialise SQLAlchemy via init_app() and register the models
  4. Create the per-app rate limiter
  5. Register all route blueprints under /api/v1
  6. Register global error handlers (AppError → JSON, Exception → 500)
"""

from __future__ import annotations

import logging
import traceback

from flask import Flask, jsonify
from marshmallow import ValidationError
from werkzeug.exceptions import HTTPException

from equalpay.config import config_by_name, validate_production_config


def create_app(config_name: str = "development") -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
                     Defaults to "development".
    """
    app = Flask(__name__)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    _configure_logging(app)

    # ── Extensions ─────────────────────────────────────────────────────────
    from equalpay.app.extensions import db
    db.init_app(app)

    # Import all models so SQLAlchemy's MetaData is populated before
    # db.create_all() or Alembic inspects it.
    with app.app_context():
        from equalpay.app.models import (  # noqa: F401
            activity,
            expense,
            group,
            membership,
            settlement,
            split,
            user,
        )

    from equalpay.app.services.rate_limiter import RateLimiter
    app.extensions["rate_limiter"] = RateLimiter(
        limit=app.config["RATE_LIMIT_REQUESTS"],
        window_seconds=app.config["RATE_LIMIT_WINDOW_SECONDS"],
        max_keys=app.config["RATE_LIMIT_MAX_KEYS"],
    )

    _register_blueprints(app)
    _register_error_handlers(app)

    return app


def _configure_logging(app: Flask) -> None:
    """
    Applies LOG_LEVEL to the Flask logger and to the equalpay service loggers,
    which share Flask's default stderr handler through the root logger.
    """
    level = logging.getLevelName(str(app.config.get("LOG_LEVEL", "INFO")).upper())
    if not isinstance(level, int):
        level = logging.INFO

    app.logger.setLevel(level)
    logging.getLogger("equalpay").setLevel(level)
    if not logging.getLogger().handlers:
        logging.basicConfig(
            format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
        )


def _register_blueprints(app: Flask) -> None:
    """Registers all route blueprints under the /api/v1 prefix."""
    from equalpay.app.routes.activity import activity_bp
    from equalpay.app.routes.balances import balances_bp
    from equalpay.app.routes.expenses import expenses_bp
    from equalpay.app.routes.settlements import settlements_bp

    # expenses_bp owns both /groups/<id>/expenses and /expenses/<id>.
    app.register_blueprint(expenses_bp,    url_prefix="/api/v1")
    app.register_blueprint(balances_bp,    url_prefix="/api/v1/groups")
    app.register_blueprint(settlements_bp, url_prefix="/api/v1/groups")
    app.register_blueprint(activity_bp,    url_prefix="/api/v1/groups")


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

    Handlers:
      AppError        → structured JSON error envelope with the correct HTTP status
      ValidationError → first marshmallow field error as a 400 envelope
      HTTPException   → envelope carrying werkzeug's status (404, 405, ...)
      Exception       → generic INTERNAL_ERROR (500); traceback logged, never returned
    """
    from equalpay.app.errors import AppError, ErrorCode

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        """Routes never catch AppError; they let it propagate here."""
        if error.http_status >= 500:
            app.logger.error("AppError %s: %s", error.code, error.message)
        return jsonify(error.to_dict()), error.http_status, error.headers

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        Returns the FIRST field error. If the message is itself a registered
        ErrorCode (e.g. DUPLICATE_PARTICIPANT), it becomes the response code.
        """
        known_codes = set(vars(ErrorCode).values())
        messages = error.messages

        field = None
        raw_message = "Invalid input."

        if isinstance(messages, dict) and messages:
            field_name, field_errors = next(iter(messages.items()))
            field = field_name if field_name != "_schema" else None
            raw_message = _first_message(field_errors)
        elif isinstance(messages, list) and messages:
            raw_message = str(messages[0])

        if raw_message in known_codes:
            code = raw_message
        elif raw_message.startswith("Missing data for required field"):
            code = ErrorCode.MISSING_FIELD
        else:
            code = ErrorCode.INVALID_FIELD

        body = {
            "error": {
                "code": code,
                "message": _code_to_message(code) if raw_message in known_codes else raw_message,
            }
        }
        if field is not None:
            body["error"]["field"] = field
        return jsonify(body), 400

    @app.errorhandler(HTTPException)
    def handle_http_exception(error: HTTPException):
        code = ErrorCode.NOT_FOUND if error.code == 404 else ErrorCode.INVALID_FIELD
        return jsonify({
            "error": {"code": code, "message": error.description},
        }), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
        """Stack traces never leave the server."""
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


def _first_message(field_errors) -> str:
    """Digs the first message out of marshmallow's nested error structure."""
    while True:
        if isinstance(field_errors, list):
            if not field_errors:
                return "Invalid value."
            field_errors = field_errors[0]
        elif isinstance(field_errors, dict):
            if not field_errors:
                return "Invalid value."
            field_errors = next(iter(field_errors.values()))
        else:
            return str(field_errors)


def _code_to_message(code: str) -> str:
    """Human-readable default message for a code raised as a ValidationError message."""
    _messages = {
        "INVALID_SPLIT_TYPE": "split_type must be one of EQUAL, CUSTOM_AMOUNT, PERCENTAGE.",
        "INVALID_CURRENCY_CODE": "currency_code must be a three-letter ISO 4217 code.",
        "DUPLICATE_PARTICIPANT": "The same user_id appears more than once in participants.",
    }
    return _messages.get(code, "Invalid input.")
