"""
app/__init__.py — Flask application factory.

Pattern: create_app(config_name) creates and returns a configured Flask app.
         Nothing is initialised at import time, which allows:
           - Multiple isolated test app instances
           - `alembic` to import the models without starting a server

Responsibilities:
  1. Load configuration from config_by_name[config_name] (+ overrides)
  2. Configure the "roomledger" logger
  3. Initialise Flask-SQLAlchemy via init_app()
  4. Build the LedgerService on a sessionmaker bound to db.engine, store
     it in app.extensions (see extensions.get_ledger_service) and shut its
     read pool down at exit
  5. Register all route blueprints under /api/v1
  6. Register global error handlers (AppError → JSON, Exception → 500)
  7. Register a JSON provider that serialises Decimal as string, UUID in
     canonical form and dates as ISO 8601
"""

from __future__ import annotations

import atexit
import traceback
import uuid
from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal

from flask import Flask, jsonify
from flask.json.provider import DefaultJSONProvider
from marshmallow import ValidationError
from sqlalchemy.orm import sessionmaker
from werkzeug.exceptions import HTTPException

from roomledger.config import config_by_name, validate_production_config


# ── Custom JSON provider ───────────────────────────────────────────────────
# Monetary amounts are serialised as strings to preserve precision.
# Flask's default would render dates as RFC 822 strings; the API uses ISO.

class DecimalJSONProvider(DefaultJSONProvider):
    """
    Example: Decimal("10.50") → "10.50" (not 10.5 or 10.500000001)
             date(2024, 1, 31) → "2024-01-31"
    """

    def default(self, o):
        if isinstance(o, Decimal):
            return str(o)
        if isinstance(o, uuid.UUID):
            return str(o).lower()
        if isinstance(o, (datetime, date)):
            return o.isoformat()
        return super().default(o)


# ── Application factory ────────────────────────────────────────────────────

def create_app(config_name: str = "development", overrides: Mapping | None = None) -> Flask:
    """
    Creates and returns a configured Flask application instance.

    Args:
        config_name: One of "development", "testing", "production".
        overrides:   Optional config values applied after the config class.
                     Tests use it to point SQLALCHEMY_DATABASE_URI at a
                     temporary database.
    """
    app = Flask(__name__)
    app.json_provider_class = DecimalJSONProvider
    app.json = DecimalJSONProvider(app)

    # ── Configuration ──────────────────────────────────────────────────────
    config_class = config_by_name.get(config_name, config_by_name["development"])
    app.config.from_object(config_class)
    if overrides:
        app.config.update(overrides)

    if config_name == "production":
        validate_production_config(app)  # raises ValueError if misconfigured

    from roomledger.app.log_config import configure_logging
    configure_logging(app.config.get("LOG_LEVEL", "INFO"))

    # ── Extensions ─────────────────────────────────────────────────────────
    from roomledger.app.extensions import LEDGER_EXTENSION_KEY, db
    db.init_app(app)

    # ── Model registration + ledger service ───────────────────────────────
    # Models are imported so db.metadata is populated for create_all() and
    # Alembic. The service gets its own sessionmaker; it never uses
    # db.session, so its reads can run on worker threads.
    with app.app_context():
        from roomledger.app.models import (  # noqa: F401
            group,
            incentive,
            membership,
            purchase,
            user,
        )
        from roomledger.app.services.ledger_service import LedgerService
        from roomledger.app.store import LedgerStore

        session_factory = sessionmaker(bind=db.engine, expire_on_commit=False)
        service = LedgerService(
            LedgerStore(session_factory),
            max_workers=app.config["LEDGER_MAX_WORKERS"],
        )
        app.extensions[LEDGER_EXTENSION_KEY] = service
        # Read pool starts lazily and is joined at interpreter exit.
        atexit.register(service.close)

    _register_blueprints(app)
    _register_error_handlers(app)

    return app


def _register_blueprints(app: Flask) -> None:
    """
    Registers all route blueprints.

    groups_bp and users_bp own their resource prefix. incentives_bp is
    mounted at /api/v1 because it serves both /groups/<id>/incentives and
    /incentives/<id>/realizations; purchases_bp shares the groups prefix.
    """
    from roomledger.app.routes.groups import groups_bp
    from roomledger.app.routes.incentives import incentives_bp
    from roomledger.app.routes.purchases import purchases_bp
    from roomledger.app.routes.users import users_bp

    app.register_blueprint(groups_bp,     url_prefix="/api/v1/groups")
    app.register_blueprint(purchases_bp,  url_prefix="/api/v1/groups")
    app.register_blueprint(incentives_bp, url_prefix="/api/v1")
    app.register_blueprint(users_bp,      url_prefix="/api/v1/users")


def _register_error_handlers(app: Flask) -> None:
    """
    Registers global error handlers.

      AppError        → structured JSON error envelope with its HTTP status
      ValidationError → first failing field as MISSING_FIELD / INVALID_FIELD
                        (or the ErrorCode carried as the message) (400)
      HTTPException   → the same envelope with Werkzeug's status
      Exception       → generic INTERNAL_ERROR (500); traceback logged

    Stack traces never leave the server.
    """
    from roomledger.app.errors import AppError, ErrorCode

    known_codes = set(vars(ErrorCode).values())

    @app.errorhandler(AppError)
    def handle_app_error(error: AppError):
        return jsonify(error.to_dict()), error.http_status

    @app.errorhandler(ValidationError)
    def handle_validation_error(error: ValidationError):
        """
        Returns only the FIRST error. marshmallow keys messages by field name;
        a schema-level error arrives under "_schema".
        """
        messages = error.messages  # e.g. {"amount": ["INVALID_AMOUNT_PRECISION"]}

        field = None
        raw_message = "Invalid input."
        if isinstance(messages, dict) and messages:
            field_name, field_errors = next(iter(messages.items()))
            field = field_name if field_name != "_schema" else None
            if isinstance(field_errors, list):
                raw_message = str(field_errors[0]) if field_errors else "Invalid value."
            else:
                raw_message = str(field_errors)
        elif isinstance(messages, list) and messages:
            raw_message = str(messages[0])

        if raw_message in known_codes:
            code = raw_message
            message = _code_to_message(code)
        elif raw_message.startswith("Missing data for required field"):
            code = ErrorCode.MISSING_FIELD
            message = raw_message
        else:
            code = ErrorCode.INVALID_FIELD
            message = raw_message

        return jsonify(AppError(code, message, 400, field=field).to_dict()), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(error: HTTPException):
        code = ErrorCode.INVALID_FIELD if error.code == 400 else error.name.upper().replace(" ", "_")
        return jsonify({
            "error": {
                "code": code,
                "message": error.description,
            }
        }), error.code

    @app.errorhandler(Exception)
    def handle_unexpected_error(error: Exception):
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


def _code_to_message(code: str) -> str:
    """Default message when a ValidationError message is an ErrorCode constant."""
    _messages = {
        "INVALID_AMOUNT_PRECISION": "Amount must have at most 2 decimal places.",
        "INVALID_RANGE": "The start date must not be after the end date.",
    }
    return _messages.get(code, "Invalid input.")
