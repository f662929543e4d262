"""
models/types.py — Column types shared by every ledger table.

Money:
  Stored as an integer number of cents and surfaced as a 2-place Decimal.
  No backend ever receives or returns a binary float for a monetary value,
  which keeps SQLite (used in tests) and PostgreSQL byte-for-byte identical.
"""

from __future__ import annotations

import enum
from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import BigInteger
from sqlalchemy.types import TypeDecorator

CENT = Decimal("0.01")


class Money(TypeDecorator):
    """Decimal amount with exactly two fractional digits, persisted as cents."""

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, float):
            raise TypeError("Money columns do not accept float values.")
        amount = Decimal(value)
        if amount != amount.quantize(CENT):
            raise ValueError(f"Money value {value!r} has more than 2 decimal places.")
        return int(amount.quantize(CENT, rounding=ROUND_HALF_UP) * 100)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return (Decimal(int(value)) / 100).quantize(CENT)


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Ensure SQLAlchemy stores enum values (e.g., 'open'), not names ('OPEN')."""
    return [member.value for member in enum_cls]
