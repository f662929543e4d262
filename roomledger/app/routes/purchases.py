"""
routes/purchases.py — Purchase route handler.

Endpoints (url_prefix=/api/v1/groups):
  POST   /groups/:id/purchases   → 201  record purchase (runs incentive cascade)
"""

from __future__ import annotations

import uuid

from flask import Blueprint, jsonify, request

from roomledger.app.extensions import get_ledger_service
from roomledger.app.schemas.ledger_schema import CreatePurchaseSchema

purchases_bp = Blueprint("purchases", __name__)


@purchases_bp.route("/<uuid:group_id>/purchases", methods=["POST"])
def create_purchase(group_id: uuid.UUID):
    data = CreatePurchaseSchema().load(request.get_json(force=True, silent=True) or {})
    receipt = get_ledger_service().record_purchase(
        user_id=data["user_id"],
        group_id=group_id,
        amount=data["amount"],
        store=data["store"],
        day=data["date"],
        notes=data["notes"],
    )
    return jsonify({"data": receipt.to_dict(), "warnings": []}), 201
