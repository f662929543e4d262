"""
schemas/ledger_schema.py — Marshmallow schemas for the ledger endpoints.

Validation responsibility:
  - This file: field types, string lengths and the amount ceiling
    (mirroring column widths), amount sign and precision, date syntax.
  - services/ledger_service.py:
      - USER_NOT_FOUND / GROUP_NOT_FOUND / INCENTIVE_NOT_FOUND (DB lookups)
      - NOT_A_MEMBER, ALREADY_MEMBER, GROUP_FULL, GROUP_LOCKED
      - DUPLICATE_INCENTIVE
      - INVALID_RANGE (from after to; effective_until not after effective_from;
        join on or before the last leave; leave before the join date)

Inherits from marshmallow.Schema directly.
"""

from __future__ import annotations

from decimal import Decimal

from marshmallow import Schema, ValidationError, fields, validate

from roomledger.app.errors import ErrorCode
from roomledger.app.records import MAX_AMOUNT


# ── Shared validators ──────────────────────────────────────────────────────

def _validate_monetary_amount(value: Decimal) -> None:
    """
    Zero to MAX_AMOUNT, at most 2 decimal places. Over-precise input is
    REJECTED with INVALID_AMOUNT_PRECISION, never rounded.
    """
    if value < Decimal("0"):
        raise ValidationError("Amount must be zero or more.")
    if value > MAX_AMOUNT:
        raise ValidationError(f"Amount must be at most {MAX_AMOUNT}.")

    #   Decimal("10.123").as_tuple().exponent == -3  → REJECT
    #   Decimal("10.12").as_tuple().exponent  == -2  → accept
    if value.as_tuple().exponent < -2:
        raise ValidationError(ErrorCode.INVALID_AMOUNT_PRECISION)


def _validate_non_empty_after_trim(value: str) -> None:
    if not value.strip():
        raise ValidationError("This field must not be blank or contain only whitespace.")


def _amount_field():
    return fields.Decimal(
        required=True,
        allow_nan=False,
        validate=_validate_monetary_amount,
    )


def _notes_field():
    return fields.Str(
        load_default="",
        validate=validate.Length(max=1024, error="Notes must be at most 1024 characters."),
    )


# ── Query strings ──────────────────────────────────────────────────────────

class RangeQuerySchema(Schema):
    """?from=YYYY-MM-DD&to=YYYY-MM-DD (both inclusive)."""

    start = fields.Date(required=True, data_key="from")
    end = fields.Date(required=True, data_key="to")


# ── Membership ─────────────────────────────────────────────────────────────

class JoinGroupSchema(Schema):
    """POST /groups/:id/members"""

    user_id = fields.UUID(required=True)
    date = fields.Date(load_default=None)


class LeaveGroupSchema(Schema):
    """POST /groups/:id/members/:uid/leave"""

    date = fields.Date(load_default=None)


# ── Purchases ──────────────────────────────────────────────────────────────

class CreatePurchaseSchema(Schema):
    """
    POST /groups/:id/purchases

    store and notes default to "", date defaults to the server's today
    (resolved by the service, not here).
    """

    user_id = fields.UUID(required=True)
    amount = _amount_field()
    store = fields.Str(
        load_default="",
        validate=validate.Length(max=30, error="Store must be at most 30 characters."),
    )
    date = fields.Date(load_default=None)
    notes = _notes_field()


# ── Incentives ─────────────────────────────────────────────────────────────

class CreateIncentiveSchema(Schema):
    """POST /groups/:id/incentives"""

    name = fields.Str(
        required=True,
        validate=[
            validate.Length(
                min=1,
                max=30,
                error="Incentive name must be between 1 and 30 characters.",
            ),
            _validate_non_empty_after_trim,
        ],
    )
    amount = _amount_field()
    description = fields.Str(
        load_default="",
        validate=validate.Length(max=1024, error="Description must be at most 1024 characters."),
    )
    effective_from = fields.Date(load_default=None)
    effective_until = fields.Date(load_default=None)
    on_purchase = fields.Bool(load_default=False)


class CreateRealizationSchema(Schema):
    """POST /incentives/:id/realizations"""

    user_id = fields.UUID(required=True)
    date = fields.Date(load_default=None)
    notes = _notes_field()
