"""
Integration tests: settlement reports and snapshots through the service.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from roomledger.app.errors import AppError, ErrorCode

from .conftest import add_interval, make_group, make_user


@pytest.fixture()
def pair(store):
    ann = make_user(store, "ann", "Ann", "Lee")
    bob = make_user(store, "bob")
    group = make_group(store)
    add_interval(store, ann, group, date(2024, 1, 1))
    add_interval(store, bob, group, date(2024, 1, 1))
    return ann, bob, group


def test_two_members_split_one_hundred(service, pair):
    ann, bob, group = pair
    service.record_purchase(ann, group, Decimal("30.00"), day=date(2024, 1, 10))
    service.record_purchase(bob, group, Decimal("70.00"), day=date(2024, 1, 12))

    report = service.settlement(group, date(2024, 1, 1), date(2024, 1, 31))

    assert report.total == Decimal("100.00")
    assert report.group_share == Decimal("50.00")
    assert [(m.username, m.owes) for m in report.per_member] == [
        ("ann", Decimal("20.00")),
        ("bob", Decimal("-20.00")),
    ]
    assert report.count_purchases == 2


def test_member_who_left_mid_period_still_shares(service, store):
    ann = make_user(store, "ann")
    bob = make_user(store, "bob")
    cal = make_user(store, "cal")
    group = make_group(store)
    add_interval(store, ann, group, date(2024, 1, 1))
    add_interval(store, bob, group, date(2024, 1, 1), date(2024, 1, 10))
    add_interval(store, cal, group, date(2024, 1, 1))
    service.record_purchase(ann, group, Decimal("100.00"), day=date(2024, 1, 20))

    report = service.settlement(group, date(2024, 1, 1), date(2024, 1, 31))

    assert report.member_count == 3
    assert report.group_share == Decimal("33.33")
    assert report.remainder == Decimal("0.01")
    assert sum(m.owes for m in report.per_member) == -report.remainder


def test_settlement_is_idempotent(service, pair):
    ann, _, group = pair
    service.record_purchase(ann, group, Decimal("12.34"), day=date(2024, 1, 3))

    first = service.settlement(group, date(2024, 1, 1), date(2024, 1, 31))
    second = service.settlement(group, date(2024, 1, 1), date(2024, 1, 31))

    assert first == second


def test_settlement_without_members_is_rejected(service, store):
    group = make_group(store)

    with pytest.raises(AppError) as exc_info:
        service.settlement(group, date(2024, 1, 1), date(2024, 1, 31))

    assert exc_info.value.code == ErrorCode.NO_ACTIVE_MEMBERS


def test_current_month_snapshot(service, pair):
    ann, bob, group = pair
    service.record_incentive_definition(group, "Bins", Decimal("2.00"), on_purchase=True)
    service.record_purchase(ann, group, Decimal("8.00"))
    service.record_purchase(bob, group, Decimal("4.00"), day=date(2024, 1, 31))

    data = service.current_month_snapshot(group).to_dict()

    assert data["group_name"] == "Flat 3"
    assert data["count_members"] == 2
    assert data["members"][0]["first_name"] == "Ann"
    assert data["count_incentives_available"] == 1
    tx = data["transactions"]
    assert tx["period_from"] == date(2024, 2, 1)
    assert tx["period_to"] == date(2024, 2, 29)
    assert tx["count_purchases"] == 1
    assert tx["count_incentives"] == 1
    assert tx["total"] == Decimal("10.00")
    assert tx["group_share"] == Decimal("5.00")
    assert [r["type"] for r in tx["records"]] == ["purchase", "incentive"]
