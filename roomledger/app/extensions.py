"""
extensions.py — Flask extension singletons and the ledger service accessor.

Pattern:
    1. Create the extension object here (no app attached yet).
    2. Call init_app(app) inside the app factory in app/__init__.py.
    3. Import `db` from here wherever a model is declared.

The engine itself never touches `db.session`. Models inherit from db.Model
so Alembic and the Flask app share one MetaData, but LedgerStore opens its
own sessions from a sessionmaker bound to db.engine (see app/store.py).
"""

from __future__ import annotations

from flask import current_app
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# Key under app.extensions where create_app() stores the LedgerService.
LEDGER_EXTENSION_KEY = "roomledger.ledger"


def get_ledger_service():
    """Returns the LedgerService bound to the current Flask app."""
    return current_app.extensions[LEDGER_EXTENSION_KEY]
