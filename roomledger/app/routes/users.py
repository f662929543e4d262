"""
routes/users.py — Per-user listing handlers.

Endpoints (url_prefix=/api/v1/users):
  GET    /users/:id/groups   → 200  ids of groups with an open membership

The listing returns ids only, not a snapshot per group. Clients build a
dashboard by calling GET /groups/:id for each id they need.
"""

from __future__ import annotations

import uuid

from flask import Blueprint, jsonify

from roomledger.app.extensions import get_ledger_service
from roomledger.app.records import format_id

users_bp = Blueprint("users", __name__)


@users_bp.route("/<uuid:user_id>/groups", methods=["GET"])
def list_user_groups(user_id: uuid.UUID):
    group_ids = get_ledger_service().groups_for_user(user_id)
    result = {
        "user_id": format_id(user_id),
        "groups": [format_id(g) for g in group_ids],
    }
    return jsonify({"data": result, "warnings": []}), 200
