"""
services/settlement_calculator.py — Equal-share settlement for a period.

This file is the single place where the group share and member balances
are computed.

Algorithm for (group, start, end):
  1. count = number of distinct members active at any point in the period.
     count == 0 raises NO_ACTIVE_MEMBERS. No report with a zero share.
  2. total = group expense total for the period.
  3. group_share = floor(total / count) at cent precision. The cents the
     floor leaves over (0 .. count-1) are NOT redistributed to anyone.
  4. For every active member, in username order:
         total_contribution = own purchases + own realizations in range
         owes               = group_share - total_contribution
     positive owes = member pays into the pool, negative = member is owed.

Because of step 3, the sum of owes across members is in [0, count-1]
cents rather than exactly zero. Existing settlement outputs depend on this
rounding; exact division would change them.

build_settlement() is pure. Given the same records it returns an equal
report, so settlement() is idempotent for an unchanged store.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import date
from decimal import Decimal

from roomledger.app.errors import AppError, ErrorCode
from roomledger.app.records import (
    CENT,
    ZERO,
    ActiveMember,
    MemberSettlement,
    PurchaseRecord,
    RealizationRecord,
    SettlementReport,
)
from roomledger.app.services.expense_aggregator import (
    purchases_in_range,
    realizations_in_range,
    summarize,
)
from roomledger.app.services.membership_ledger import active_members, validate_range

logger = logging.getLogger(__name__)


def _no_active_members(group_id: uuid.UUID, start: date, end: date) -> AppError:
    return AppError(
        ErrorCode.NO_ACTIVE_MEMBERS,
        f"Group {group_id} has no active members between "
        f"{start.isoformat()} and {end.isoformat()}.",
        422,
    )


def compute_group_share(total: Decimal, count: int) -> Decimal:
    """
    floor(total / count) in whole cents, returned as a 2-place Decimal.

    Works on integer cents so no fractional cent ever appears:
        compute_group_share(Decimal("100.00"), 3) == Decimal("33.33")
    """
    if count <= 0:
        raise AppError(
            ErrorCode.NO_ACTIVE_MEMBERS,
            "Cannot split an expense between zero members.",
            422,
        )
    total_cents = int((total.quantize(CENT) * 100).to_integral_value())
    share_cents = total_cents // count
    return (Decimal(share_cents) / 100).quantize(CENT)


def build_settlement(
        group_id: uuid.UUID,
        start: date,
        end: date,
        members: Sequence[ActiveMember],
        purchases: Iterable[PurchaseRecord],
        realizations: Iterable[RealizationRecord],
) -> SettlementReport:
    """
    Pure settlement over already-decoded inputs.

    `members` must be the active members for [start, end]. Records of users
    that are not in `members` still count toward the group total but get no
    row of their own.
    """
    if not members:
        raise _no_active_members(group_id, start, end)

    purchases = list(purchases)
    realizations = list(realizations)
    breakdown = summarize(purchases, realizations)
    group_share = compute_group_share(breakdown.total, len(members))

    purchase_sums: dict[uuid.UUID, Decimal] = defaultdict(lambda: ZERO)
    purchase_counts: dict[uuid.UUID, int] = defaultdict(int)
    for purchase in purchases:
        purchase_sums[purchase.user_id] += purchase.amount
        purchase_counts[purchase.user_id] += 1

    incentive_sums: dict[uuid.UUID, Decimal] = defaultdict(lambda: ZERO)
    incentive_counts: dict[uuid.UUID, int] = defaultdict(int)
    for realization in realizations:
        incentive_sums[realization.user_id] += realization.amount
        incentive_counts[realization.user_id] += 1

    rows = []
    for member in sorted(members, key=lambda m: (m.username, str(m.user_id))):
        total_purchases = purchase_sums[member.user_id]
        total_incentives = incentive_sums[member.user_id]
        contribution = total_purchases + total_incentives
        rows.append(MemberSettlement(
            user_id=member.user_id,
            username=member.username,
            total_purchases=total_purchases,
            count_purchases=purchase_counts[member.user_id],
            total_incentives=total_incentives,
            count_incentives=incentive_counts[member.user_id],
            total_contribution=contribution,
            owes=group_share - contribution,
        ))

    return SettlementReport(
        group_id=group_id,
        period_from=start,
        period_to=end,
        member_count=len(members),
        total=breakdown.total,
        group_share=group_share,
        count_purchases=breakdown.count_purchases,
        count_incentives=breakdown.count_incentives,
        per_member=tuple(rows),
    )


def settlement(group_id: uuid.UUID, start: date, end: date, store) -> SettlementReport:
    """
    Sequential settlement straight from the store.

    LedgerService.settlement() computes the same report with its reads
    issued concurrently.
    """
    validate_range(start, end)
    members = active_members(group_id, start, end, store)
    if not members:
        raise _no_active_members(group_id, start, end)

    report = build_settlement(
        group_id,
        start,
        end,
        members,
        purchases_in_range(group_id, start, end, store),
        realizations_in_range(group_id, start, end, store),
    )
    logger.debug(
        "Settlement for group %s %s..%s: total=%s share=%s members=%d",
        group_id, start, end, report.total, report.group_share, report.member_count,
    )
    return report
