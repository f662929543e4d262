"""
services/expense_aggregator.py — Group expense totals and the merged
transaction listing.

Group expense over [start, end] (both ends inclusive) is

    sum(purchase.amount)          for purchases of the group in range
  + sum(definition.amount)        for incentive realizations in range

where a realization takes its amount from its incentive definition. Either
sum is 0.00 when no row matches; totals are never None.

The store is scanned per kind; every row is decoded before it is summed.
All arithmetic is Decimal. Totals are additive over adjacent ranges because
each row is counted in exactly one day.
"""

from __future__ import annotations

import heapq
import uuid
from collections.abc import Iterable, Iterator
from datetime import date
from decimal import Decimal

from roomledger.app.records import (
    ZERO,
    ExpenseBreakdown,
    PurchaseRecord,
    RealizationRecord,
    TransactionRecord,
    purchase_from_row,
    realization_from_row,
)
from roomledger.app.services.membership_ledger import validate_range


# ── Range scans ────────────────────────────────────────────────────────────

def purchases_in_range(
        group_id: uuid.UUID,
        start: date,
        end: date,
        store,
        user_id: uuid.UUID | None = None,
) -> list[PurchaseRecord]:
    return [
        purchase_from_row(row)
        for row in store.list_purchases(group_id, start, end, user_id=user_id)
    ]


def realizations_in_range(
        group_id: uuid.UUID,
        start: date,
        end: date,
        store,
        user_id: uuid.UUID | None = None,
) -> list[RealizationRecord]:
    return [
        realization_from_row(row)
        for row in store.list_realizations(group_id, start, end, user_id=user_id)
    ]


# ── Totals ─────────────────────────────────────────────────────────────────

def summarize(
        purchases: Iterable[PurchaseRecord],
        realizations: Iterable[RealizationRecord],
) -> ExpenseBreakdown:
    """Pure: totals and record counts for already-decoded records."""
    purchase_total = ZERO
    count_purchases = 0
    for purchase in purchases:
        purchase_total += purchase.amount
        count_purchases += 1

    incentive_total = ZERO
    count_incentives = 0
    for realization in realizations:
        incentive_total += realization.amount
        count_incentives += 1

    return ExpenseBreakdown(
        purchase_total=purchase_total,
        incentive_total=incentive_total,
        count_purchases=count_purchases,
        count_incentives=count_incentives,
    )


def expense_breakdown(
        group_id: uuid.UUID,
        start: date,
        end: date,
        store,
) -> ExpenseBreakdown:
    validate_range(start, end)
    return summarize(
        purchases_in_range(group_id, start, end, store),
        realizations_in_range(group_id, start, end, store),
    )


def group_expense_total(group_id: uuid.UUID, start: date, end: date, store) -> Decimal:
    """Purchases plus realized incentives for the group in [start, end]."""
    return expense_breakdown(group_id, start, end, store).total


# ── Merged transaction listing ─────────────────────────────────────────────

def merge_transactions(
        purchases: Iterable[PurchaseRecord],
        realizations: Iterable[RealizationRecord],
) -> Iterator[TransactionRecord]:
    """
    Lazily merges two date-ordered streams into one, oldest first.

    Both inputs must already be sorted by date (the store returns them that
    way). On equal dates purchases come before incentives.
    """
    return heapq.merge(
        (TransactionRecord.from_purchase(p) for p in purchases),
        (TransactionRecord.from_realization(r) for r in realizations),
        key=lambda record: record.date,
    )


class TransactionStream:
    """
    Restartable view over a group's transactions in [start, end].

    Nothing is read on construction. Every iteration queries the store
    again, so two passes over the same stream reflect the store at the
    time of each pass and no rows are cached between them.
    """

    def __init__(self, group_id: uuid.UUID, start: date, end: date, store) -> None:
        validate_range(start, end)
        self.group_id = group_id
        self.start = start
        self.end = end
        self._store = store

    def __iter__(self) -> Iterator[TransactionRecord]:
        return merge_transactions(
            purchases_in_range(self.group_id, self.start, self.end, self._store),
            realizations_in_range(self.group_id, self.start, self.end, self._store),
        )

    def __repr__(self) -> str:
        return (
            f"TransactionStream(group_id={self.group_id!s}, "
            f"start={self.start.isoformat()}, end={self.end.isoformat()})"
        )


def transaction_records(group_id: uuid.UUID, start: date, end: date, store) -> TransactionStream:
    return TransactionStream(group_id, start, end, store)
