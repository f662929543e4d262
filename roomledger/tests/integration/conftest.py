"""
tests/integration/conftest.py — Fixtures and helpers for integration tests.

Design:
  - Every test gets its own file-backed SQLite database under tmp_path,
    created through create_app("testing", overrides=...) and db.create_all().
    A file (not :memory:) is used because the ledger service reads on
    worker threads, each with its own connection.
  - The app's LedgerService is replaced by one whose clock is pinned to
    TODAY, so "current month" and incentive effectiveness are deterministic.

Helper functions (not fixtures), callable with arbitrary arguments:
  - make_user(store, username)            → user id
  - make_group(store, name, ...)          → group id
  - add_interval(store, user, group, ...) → writes a membership row directly
  - envelope(response)                    → response JSON "data" payload
"""

from __future__ import annotations

from datetime import date

import pytest

from roomledger.app import create_app
from roomledger.app.extensions import LEDGER_EXTENSION_KEY
from roomledger.app.extensions import db as _db
from roomledger.app.models.group import GroupStatus
from roomledger.app.services.ledger_service import LedgerService

TODAY = date(2024, 2, 14)


# ═══════════════════════════════════════════════════════════════════════════
# Fixtures
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture()
def app(tmp_path):
    db_path = tmp_path / "roomledger_test.db"
    flask_app = create_app(
        "testing",
        overrides={"SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}"},
    )

    with flask_app.app_context():
        _db.create_all()

    default_service = flask_app.extensions[LEDGER_EXTENSION_KEY]
    default_service.close()
    pinned = LedgerService(default_service.store, today=lambda: TODAY, max_workers=2)
    flask_app.extensions[LEDGER_EXTENSION_KEY] = pinned

    yield flask_app

    pinned.close()
    with flask_app.app_context():
        _db.drop_all()
        _db.engine.dispose()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def service(app) -> LedgerService:
    return app.extensions[LEDGER_EXTENSION_KEY]


@pytest.fixture()
def store(service):
    return service.store


# ═══════════════════════════════════════════════════════════════════════════
# Helpers
# ═══════════════════════════════════════════════════════════════════════════

def make_user(store, username: str, first_name: str = "", last_name: str = ""):
    return store.insert_user(
        username=username,
        email=f"{username}@example.com",
        first_name=first_name,
        last_name=last_name,
    )


def make_group(store, name: str = "Flat 3", status=GroupStatus.OPEN, max_members=None):
    return store.insert_group(name=name, status=status, max_members=max_members)


def add_interval(store, user_id, group_id, joined_on: date, left_on: date | None = None) -> None:
    """Writes a (possibly closed) membership interval without going through join/leave."""
    store.insert_membership(user_id, group_id, joined_on)
    if left_on is not None:
        store.close_membership(user_id, group_id, left_on)


def envelope(response) -> dict:
    body = response.get_json()
    assert "data" in body, body
    assert body["warnings"] is not None
    return body["data"]
