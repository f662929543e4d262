"""
routes/incentives.py — Incentive catalogue and manual realization handlers.

Registered at /api/v1 because it owns both a group-scoped path and an
incentive-scoped path.

Endpoints:
  POST   /groups/:id/incentives              → 201  define incentive
  POST   /incentives/:id/realizations        → 201  record realization
"""

from __future__ import annotations

import uuid

from flask import Blueprint, jsonify, request

from roomledger.app.extensions import get_ledger_service
from roomledger.app.records import format_id
from roomledger.app.schemas.ledger_schema import (
    CreateIncentiveSchema,
    CreateRealizationSchema,
)

incentives_bp = Blueprint("incentives", __name__)


@incentives_bp.route("/groups/<uuid:group_id>/incentives", methods=["POST"])
def create_incentive(group_id: uuid.UUID):
    data = CreateIncentiveSchema().load(request.get_json(force=True, silent=True) or {})
    incentive = get_ledger_service().record_incentive_definition(
        group_id=group_id,
        name=data["name"].strip(),
        amount=data["amount"],
        effective_from=data["effective_from"],
        effective_until=data["effective_until"],
        on_purchase=data["on_purchase"],
        description=data["description"],
    )
    return jsonify({"data": incentive.to_dict(), "warnings": []}), 201


@incentives_bp.route("/incentives/<uuid:incentive_id>/realizations", methods=["POST"])
def create_realization(incentive_id: uuid.UUID):
    data = CreateRealizationSchema().load(request.get_json(force=True, silent=True) or {})
    realization = get_ledger_service().record_incentive_realization(
        user_id=data["user_id"],
        incentive_id=incentive_id,
        day=data["date"],
        notes=data["notes"],
    )
    result = {
        "user_id": format_id(realization.user_id),
        "username": realization.username,
        "incentive_id": format_id(realization.incentive_id),
        "incentive_name": realization.incentive_name,
        "group_id": format_id(realization.group_id),
        "date": realization.date,
        "amount": realization.amount,
        "notes": realization.notes,
    }
    return jsonify({"data": result, "warnings": []}), 201
