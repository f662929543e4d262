"""Unit tests for AppError, the error registry, logging setup and config helpers."""

from __future__ import annotations

import logging
from types import SimpleNamespace

import pytest

from roomledger import config
from roomledger.app.errors import AppError, ErrorCode
from roomledger.app.log_config import LOGGER_NAME, configure_logging


def test_app_error_to_dict_includes_field_only_when_set():
    plain = AppError(ErrorCode.GROUP_NOT_FOUND, "missing", 404)
    with_field = AppError(ErrorCode.INVALID_FIELD, "bad", 400, field="amount")

    assert plain.to_dict() == {"error": {"code": "GROUP_NOT_FOUND", "message": "missing"}}
    assert with_field.to_dict()["error"]["field"] == "amount"


@pytest.mark.parametrize("code, status", [
    (ErrorCode.INVALID_RANGE, 400),
    (ErrorCode.NO_ACTIVE_MEMBERS, 422),
    (ErrorCode.NOT_A_MEMBER, 422),
    (ErrorCode.GROUP_FULL, 409),
    (ErrorCode.USER_NOT_FOUND, 404),
])
def test_enumerated_codes_are_caller_errors(code, status):
    assert AppError(code, "x", status).is_caller_error


def test_internal_error_is_a_system_fault():
    assert not AppError(ErrorCode.INTERNAL_ERROR, "boom", 500).is_caller_error


def test_configure_logging_is_idempotent():
    logger = logging.getLogger(LOGGER_NAME)
    before = len(logger.handlers)

    configure_logging("DEBUG")
    configure_logging("WARNING")

    ours = [h for h in logger.handlers if getattr(h, "_roomledger", False)]
    assert len(ours) == 1
    assert len(logger.handlers) <= before + 1
    assert logger.level == logging.WARNING


def test_configure_logging_unknown_level_falls_back_to_info():
    assert configure_logging("LOUD").level == logging.INFO


def test_max_workers_falls_back_on_invalid_values(monkeypatch):
    monkeypatch.setenv("LEDGER_MAX_WORKERS", "zero")
    assert config._max_workers() == 4

    monkeypatch.setenv("LEDGER_MAX_WORKERS", "-2")
    assert config._max_workers() == 4

    monkeypatch.setenv("LEDGER_MAX_WORKERS", "8")
    assert config._max_workers() == 8


def test_postgres_scheme_is_normalised():
    assert config._normalise_db_url("postgres://u:p@h/db") == "postgresql://u:p@h/db"
    assert config._normalise_db_url("sqlite:///x.db") == "sqlite:///x.db"


def test_validate_production_config_rejects_placeholder_secret():
    app = SimpleNamespace(config={
        "SQLALCHEMY_DATABASE_URI": "postgresql://db",
        "SECRET_KEY": "change-me-in-production",
    })
    with pytest.raises(ValueError):
        config.validate_production_config(app)


def test_validate_production_config_requires_database_url():
    app = SimpleNamespace(config={"SQLALCHEMY_DATABASE_URI": "", "SECRET_KEY": "s3cret"})
    with pytest.raises(ValueError):
        config.validate_production_config(app)
