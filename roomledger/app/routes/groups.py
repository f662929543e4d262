"""
routes/groups.py — Group snapshot, settlement and membership route handlers.

Layer rules:
  - Parse, validate, call ONE service method, return envelope.
  - No business logic. No DB queries.

Endpoints (url_prefix=/api/v1/groups):
  GET    /groups/:id                         → 200  current month snapshot
  GET    /groups/:id/ledger?from=&to=        → 200  range snapshot
  GET    /groups/:id/settlement?from=&to=    → 200  settlement report
  POST   /groups/:id/members                 → 201  join group
  POST   /groups/:id/members/:uid/leave      → 200  leave group
"""

from __future__ import annotations

import uuid

from flask import Blueprint, jsonify, request

from roomledger.app.extensions import get_ledger_service
from roomledger.app.records import format_id
from roomledger.app.schemas.ledger_schema import (
    JoinGroupSchema,
    LeaveGroupSchema,
    RangeQuerySchema,
)

groups_bp = Blueprint("groups", __name__)


@groups_bp.route("/<uuid:group_id>", methods=["GET"])
def get_group(group_id: uuid.UUID):
    """GET /groups/:id — Snapshot for the current calendar month."""
    snapshot = get_ledger_service().current_month_snapshot(group_id)
    return jsonify({"data": snapshot.to_dict(), "warnings": []}), 200


@groups_bp.route("/<uuid:group_id>/ledger", methods=["GET"])
def get_ledger(group_id: uuid.UUID):
    """GET /groups/:id/ledger?from=&to= — Snapshot for an arbitrary range."""
    query = RangeQuerySchema().load(request.args)
    snapshot = get_ledger_service().range_snapshot(group_id, query["start"], query["end"])
    return jsonify({"data": snapshot.to_dict(), "warnings": []}), 200


@groups_bp.route("/<uuid:group_id>/settlement", methods=["GET"])
def get_settlement(group_id: uuid.UUID):
    """GET /groups/:id/settlement?from=&to= — Per-member balances."""
    query = RangeQuerySchema().load(request.args)
    report = get_ledger_service().settlement(group_id, query["start"], query["end"])

    warnings = []
    if report.remainder:
        warnings.append(
            f"{report.remainder} of the total is not covered by the equal share."
        )
    return jsonify({"data": report.to_dict(), "warnings": warnings}), 200


@groups_bp.route("/<uuid:group_id>/members", methods=["POST"])
def join_group(group_id: uuid.UUID):
    """POST /groups/:id/members — Open a membership interval for a user."""
    data = JoinGroupSchema().load(request.get_json(force=True, silent=True) or {})
    interval = get_ledger_service().join_group(data["user_id"], group_id, on=data["date"])
    result = {
        "user_id": format_id(interval.user_id),
        "username": interval.username,
        "group_id": format_id(interval.group_id),
        "joined_group": interval.joined_on,
    }
    return jsonify({"data": result, "warnings": []}), 201


@groups_bp.route("/<uuid:group_id>/members/<uuid:user_id>/leave", methods=["POST"])
def leave_group(group_id: uuid.UUID, user_id: uuid.UUID):
    """POST /groups/:id/members/:uid/leave — Close the user's open interval."""
    data = LeaveGroupSchema().load(request.get_json(force=True, silent=True) or {})
    left_on = get_ledger_service().leave_group(user_id, group_id, on=data["date"])
    result = {
        "user_id": format_id(user_id),
        "group_id": format_id(group_id),
        "left_group": left_on,
    }
    return jsonify({"data": result, "warnings": []}), 200
