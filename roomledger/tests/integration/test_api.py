"""
tests/integration/test_api.py — HTTP adapter tests through the Flask test client.

Verifies the envelope, status codes, error mapping and serialisation
(amounts as strings, dates as ISO, identifiers canonical).
"""

from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal

import pytest

from .conftest import add_interval, envelope, make_group, make_user


@pytest.fixture()
def seeded(store):
    ann = make_user(store, "ann")
    bob = make_user(store, "bob")
    group = make_group(store)
    add_interval(store, ann, group, date(2024, 1, 1))
    add_interval(store, bob, group, date(2024, 1, 1))
    return {"ann": ann, "bob": bob, "group": group}


def _purchase(client, group, user, amount="10.00", **extra):
    body = {"user_id": str(user), "amount": amount}
    body.update(extra)
    return client.post(f"/api/v1/groups/{group}/purchases", json=body)


# ── Purchases ──────────────────────────────────────────────────────────────

def test_create_purchase_returns_201_with_string_amount(client, seeded):
    resp = _purchase(client, seeded["group"], seeded["ann"], "12.50", store="Aldi", date="2024-02-03")

    assert resp.status_code == 201
    data = envelope(resp)
    assert data["amount"] == "12.50"
    assert data["date"] == "2024-02-03"
    assert data["store"] == "Aldi"
    assert data["user_id"] == str(seeded["ann"])
    assert data["cascaded_incentives"] == []


def test_purchase_amount_precision_rejected(client, seeded):
    resp = _purchase(client, seeded["group"], seeded["ann"], "1.005")

    assert resp.status_code == 400
    error = resp.get_json()["error"]
    assert error["code"] == "INVALID_AMOUNT_PRECISION"
    assert error["field"] == "amount"


def test_purchase_negative_amount_rejected(client, seeded):
    resp = _purchase(client, seeded["group"], seeded["ann"], "-1.00")

    assert resp.status_code == 400
    assert resp.get_json()["error"]["code"] == "INVALID_FIELD"


def test_purchase_missing_user_id(client, seeded):
    resp = client.post(f"/api/v1/groups/{seeded['group']}/purchases", json={"amount": "1.00"})

    assert resp.status_code == 400
    error = resp.get_json()["error"]
    assert error["code"] == "MISSING_FIELD"
    assert error["field"] == "user_id"


def test_purchase_store_name_too_long(client, seeded):
    resp = _purchase(client, seeded["group"], seeded["ann"], store="x" * 31)

    assert resp.status_code == 400
    assert resp.get_json()["error"]["field"] == "store"


@pytest.mark.parametrize("amount", ["1000.00", "1E+30", "99999999999999999999.00"])
def test_purchase_amount_above_ceiling_writes_nothing(client, service, store, seeded, amount):
    store.insert_incentive(seeded["group"], "Bins", Decimal("5.00"), date(2024, 1, 1), on_purchase=True)

    resp = _purchase(client, seeded["group"], seeded["ann"], amount)

    assert resp.status_code == 400
    error = resp.get_json()["error"]
    assert error["code"] == "INVALID_FIELD"
    assert error["field"] == "amount"
    assert list(service.transaction_records(seeded["group"], date(2024, 1, 1), date(2024, 12, 31))) == []


def test_purchase_at_ceiling_is_accepted(client, seeded):
    resp = _purchase(client, seeded["group"], seeded["ann"], "999.99")

    assert resp.status_code == 201
    assert envelope(resp)["amount"] == "999.99"


def test_purchase_by_non_member_is_422(client, store, seeded):
    eve = make_user(store, "eve")

    resp = _purchase(client, seeded["group"], eve)

    assert resp.status_code == 422
    assert resp.get_json()["error"]["code"] == "NOT_A_MEMBER"


# ── Snapshots and settlement ───────────────────────────────────────────────

def test_group_snapshot_for_current_month(client, seeded):
    _purchase(client, seeded["group"], seeded["ann"], "9.99")

    resp = client.get(f"/api/v1/groups/{seeded['group']}")

    assert resp.status_code == 200
    data = envelope(resp)
    assert data["group_id"] == str(seeded["group"])
    assert data["status"] == "open"
    assert data["transactions"]["period_from"] == "2024-02-01"
    assert data["transactions"]["total"] == "9.99"
    assert data["transactions"]["records"][0]["type"] == "purchase"


def test_unknown_group_is_404(client):
    resp = client.get(f"/api/v1/groups/{uuid.uuid4()}")

    assert resp.status_code == 404
    assert resp.get_json()["error"]["code"] == "GROUP_NOT_FOUND"


def test_ledger_for_range(client, seeded):
    _purchase(client, seeded["group"], seeded["ann"], "5.00", date="2024-01-15")

    resp = client.get(f"/api/v1/groups/{seeded['group']}/ledger?from=2024-01-01&to=2024-01-31")

    assert resp.status_code == 200
    tx = envelope(resp)["transactions"]
    assert tx["count_purchases"] == 1
    assert tx["group_share"] == "2.50"


def test_settlement_endpoint(client, seeded):
    _purchase(client, seeded["group"], seeded["ann"], "30.00", date="2024-01-10")
    _purchase(client, seeded["group"], seeded["bob"], "70.00", date="2024-01-11")

    resp = client.get(f"/api/v1/groups/{seeded['group']}/settlement?from=2024-01-01&to=2024-01-31")

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["warnings"] == []
    data = body["data"]
    assert data["group_share"] == "50.00"
    assert [(m["username"], m["owes"]) for m in data["per_member"]] == [
        ("ann", "20.00"),
        ("bob", "-20.00"),
    ]


def test_settlement_remainder_is_reported_as_warning(client, seeded):
    _purchase(client, seeded["group"], seeded["ann"], "0.01", date="2024-01-10")

    resp = client.get(f"/api/v1/groups/{seeded['group']}/settlement?from=2024-01-01&to=2024-01-31")

    body = resp.get_json()
    assert body["data"]["remainder"] == "0.01"
    assert len(body["warnings"]) == 1


def test_settlement_invalid_range(client, seeded):
    resp = client.get(f"/api/v1/groups/{seeded['group']}/settlement?from=2024-02-01&to=2024-01-01")

    assert resp.status_code == 400
    assert resp.get_json()["error"]["code"] == "INVALID_RANGE"


def test_settlement_missing_query_param(client, seeded):
    resp = client.get(f"/api/v1/groups/{seeded['group']}/settlement?from=2024-01-01")

    assert resp.status_code == 400
    error = resp.get_json()["error"]
    assert error["code"] == "MISSING_FIELD"
    assert error["field"] == "to"


def test_settlement_with_no_members_is_422(client, store):
    group = make_group(store, "Empty")

    resp = client.get(f"/api/v1/groups/{group}/settlement?from=2024-01-01&to=2024-01-31")

    assert resp.status_code == 422
    assert resp.get_json()["error"]["code"] == "NO_ACTIVE_MEMBERS"


# ── Membership ─────────────────────────────────────────────────────────────

def test_join_and_leave(client, store):
    group = make_group(store, "New")
    cal = make_user(store, "cal")

    joined = client.post(f"/api/v1/groups/{group}/members", json={"user_id": str(cal), "date": "2024-02-01"})
    left = client.post(f"/api/v1/groups/{group}/members/{cal}/leave", json={"date": "2024-02-10"})
    again = client.post(f"/api/v1/groups/{group}/members/{cal}/leave")

    assert joined.status_code == 201
    assert envelope(joined)["joined_group"] == "2024-02-01"
    assert left.status_code == 200
    assert envelope(left)["left_group"] == "2024-02-10"
    assert again.status_code == 422


def test_membership_dates_must_not_overlap(client, store):
    group = make_group(store, "New")
    cal = make_user(store, "cal")
    members = f"/api/v1/groups/{group}/members"

    client.post(members, json={"user_id": str(cal), "date": "2024-02-10"})
    early_leave = client.post(f"{members}/{cal}/leave", json={"date": "2024-02-01"})
    client.post(f"{members}/{cal}/leave", json={"date": "2024-02-12"})
    overlapping = client.post(members, json={"user_id": str(cal), "date": "2024-02-11"})
    after = client.post(members, json={"user_id": str(cal), "date": "2024-02-13"})

    assert early_leave.status_code == 400
    assert early_leave.get_json()["error"]["code"] == "INVALID_RANGE"
    assert overlapping.status_code == 400
    assert overlapping.get_json()["error"]["code"] == "INVALID_RANGE"
    assert after.status_code == 201


def test_join_twice_is_409(client, seeded):
    resp = client.post(f"/api/v1/groups/{seeded['group']}/members", json={"user_id": str(seeded["ann"])})

    assert resp.status_code == 409
    assert resp.get_json()["error"]["code"] == "ALREADY_MEMBER"


def test_user_groups(client, seeded):
    resp = client.get(f"/api/v1/users/{seeded['ann']}/groups")

    assert resp.status_code == 200
    assert envelope(resp)["groups"] == [str(seeded["group"])]


# ── Incentives ─────────────────────────────────────────────────────────────

def test_define_incentive_then_purchase_cascades(client, seeded):
    created = client.post(
        f"/api/v1/groups/{seeded['group']}/incentives",
        json={"name": "Shopping run", "amount": "1.50", "on_purchase": True},
    )
    purchase = _purchase(client, seeded["group"], seeded["ann"], "10.00")

    assert created.status_code == 201
    incentive = envelope(created)
    assert incentive["effective_date"] == "2024-02-14"
    assert incentive["on_purchase"] is True
    assert [i["incentive_name"] for i in envelope(purchase)["cascaded_incentives"]] == ["Shopping run"]


def test_duplicate_incentive_is_409(client, seeded):
    body = {"name": "Bins", "amount": "1.00"}
    client.post(f"/api/v1/groups/{seeded['group']}/incentives", json=body)

    resp = client.post(f"/api/v1/groups/{seeded['group']}/incentives", json=body)

    assert resp.status_code == 409
    assert resp.get_json()["error"]["code"] == "DUPLICATE_INCENTIVE"


def test_manual_realization(client, seeded):
    created = envelope(client.post(
        f"/api/v1/groups/{seeded['group']}/incentives",
        json={"name": "Bins", "amount": "2.00", "effective_from": "2024-01-01"},
    ))

    resp = client.post(
        f"/api/v1/incentives/{created['incentive_id']}/realizations",
        json={"user_id": str(seeded["bob"]), "notes": "took the bins out"},
    )

    assert resp.status_code == 201
    data = envelope(resp)
    assert data["amount"] == "2.00"
    assert data["date"] == "2024-02-14"
    assert data["username"] == "bob"


def test_unknown_route_uses_error_envelope(client):
    resp = client.get("/api/v1/nowhere")

    assert resp.status_code == 404
    assert resp.get_json()["error"]["code"] == "NOT_FOUND"
