"""
Unit tests for services/incentive_cascade.py.

Covers which definitions trigger, the note text, and the first-insert /
later-insert failure policy.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date
from unittest.mock import MagicMock

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from roomledger.app.errors import AppError, ErrorCode
from roomledger.app.services import incentive_cascade

GROUP = uuid.uuid4()
ANN = uuid.uuid4()
TODAY = date(2024, 5, 15)


def _definition(name, on_purchase=True, start=date(2024, 1, 1), until=None, amount="2.00"):
    return {
        "id": uuid.uuid4(),
        "group_id": GROUP,
        "name": name,
        "description": "",
        "amount": amount,
        "effective_from": start,
        "effective_until": until,
        "on_purchase": on_purchase,
    }


def _store(definitions) -> MagicMock:
    store = MagicMock()
    store.list_incentives.return_value = definitions
    return store


def _integrity_error() -> IntegrityError:
    return IntegrityError("INSERT INTO incentives ...", {}, Exception("FOREIGN KEY constraint failed"))


def test_cascade_note_references_purchase_date():
    assert incentive_cascade.cascade_note(date(2024, 3, 9)) == "Added by purchase on 2024-03-09."


def test_only_active_on_purchase_definitions_trigger():
    store = _store([
        _definition("Active"),
        _definition("Manual", on_purchase=False),
        _definition("Future", start=date(2024, 6, 1)),
        _definition("Expired", until=date(2024, 5, 15)),
        _definition("Ends later", until=date(2024, 5, 16)),
        _definition("Starts today", start=TODAY),
    ])

    realized = incentive_cascade.on_purchase_recorded(
        ANN, GROUP, date(2024, 5, 10), store, TODAY)

    assert [i.name for i in realized] == ["Active", "Ends later", "Starts today"]
    assert store.insert_realization.call_count == 3


def test_one_realization_per_definition_dated_purchase_day():
    definition = _definition("Bins")
    store = _store([definition])

    incentive_cascade.on_purchase_recorded(ANN, GROUP, date(2024, 5, 10), store, TODAY)

    store.insert_realization.assert_called_once_with(
        ANN,
        definition["id"],
        date(2024, 5, 10),
        notes="Added by purchase on 2024-05-10.",
    )


def test_no_definitions_means_no_writes():
    store = _store([])

    assert incentive_cascade.on_purchase_recorded(ANN, GROUP, TODAY, store, TODAY) == []
    store.insert_realization.assert_not_called()


def test_integrity_error_on_first_insert_aborts_with_incentive_not_found():
    store = _store([_definition("Gone"), _definition("Other")])
    store.insert_realization.side_effect = [_integrity_error(), None]

    with pytest.raises(AppError) as exc_info:
        incentive_cascade.on_purchase_recorded(ANN, GROUP, TODAY, store, TODAY)

    assert exc_info.value.code == ErrorCode.INCENTIVE_NOT_FOUND
    assert exc_info.value.is_caller_error
    assert store.insert_realization.call_count == 1


def test_failure_on_later_insert_is_logged_and_skipped(caplog):
    store = _store([_definition("A"), _definition("B"), _definition("C")])
    store.insert_realization.side_effect = [None, _integrity_error(), None]

    with caplog.at_level(logging.WARNING, logger="roomledger.app.services.incentive_cascade"):
        realized = incentive_cascade.on_purchase_recorded(ANN, GROUP, TODAY, store, TODAY)

    assert [i.name for i in realized] == ["A", "C"]
    assert store.insert_realization.call_count == 3
    assert any("Skipped cascade" in r.getMessage() for r in caplog.records)


def test_operational_error_on_later_insert_is_skipped():
    store = _store([_definition("A"), _definition("B")])
    store.insert_realization.side_effect = [None, OperationalError("INSERT", {}, Exception("locked"))]

    realized = incentive_cascade.on_purchase_recorded(ANN, GROUP, TODAY, store, TODAY)

    assert [i.name for i in realized] == ["A"]


def test_operational_error_on_first_insert_propagates():
    store = _store([_definition("A")])
    store.insert_realization.side_effect = OperationalError("INSERT", {}, Exception("disk I/O error"))

    with pytest.raises(OperationalError):
        incentive_cascade.on_purchase_recorded(ANN, GROUP, TODAY, store, TODAY)
