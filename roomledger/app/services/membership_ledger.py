"""
services/membership_ledger.py — Who counted as a member during a period.

A membership row is one continuous interval (joined_on, left_on). A user
who left and rejoined owns several rows for the same group. An interval is
active during [start, end] iff

    joined_on <= end  and  (left_on IS NULL or left_on >= start)

and a user is active when at least one of their intervals is. Counts are
always over DISTINCT users, so a rejoin inside the period is counted once.

Layer rules:
  - No Flask imports.
  - Receives a LedgerStore as an argument; never opens a session itself.
  - Works on decoded records from app/records.py only.
"""

from __future__ import annotations

import uuid
from datetime import date

from roomledger.app.errors import AppError, ErrorCode
from roomledger.app.records import ActiveMember, interval_from_row


def validate_range(start: date, end: date) -> None:
    """Raises INVALID_RANGE when start is after end. A single day is valid."""
    if start > end:
        raise AppError(
            ErrorCode.INVALID_RANGE,
            f"Range start {start.isoformat()} is after range end {end.isoformat()}.",
            400,
        )


def active_members(
        group_id: uuid.UUID,
        start: date,
        end: date,
        store,
) -> list[ActiveMember]:
    """
    Returns every distinct user with an interval overlapping [start, end],
    ordered by username ascending (user id breaks ties).

    The store already filters by overlap; the check is repeated on the
    decoded intervals so a store returning wider ranges stays correct.
    """
    validate_range(start, end)

    seen: dict[uuid.UUID, ActiveMember] = {}
    for row in store.list_membership_intervals(group_id, start, end):
        interval = interval_from_row(row)
        if not interval.overlaps(start, end):
            continue
        if interval.user_id not in seen:
            seen[interval.user_id] = ActiveMember(
                user_id=interval.user_id,
                username=interval.username,
            )

    return sorted(seen.values(), key=lambda m: (m.username, str(m.user_id)))


def active_member_count(group_id: uuid.UUID, start: date, end: date, store) -> int:
    return len(active_members(group_id, start, end, store))


def is_active_member(user_id: uuid.UUID, group_id: uuid.UUID, store) -> bool:
    """True when the user currently holds an open interval in the group."""
    return store.has_open_membership(user_id, group_id)
