"""
services/ledger_service.py — LedgerService: the engine's public entry point.

LedgerService composes the membership ledger, expense aggregator, incentive
cascade and settlement calculator for "current month" and arbitrary range
queries, and owns the write paths (purchases, incentives, join/leave).

Construction:
    service = LedgerService(store, today=date.today, max_workers=4)

  - `store` is the injected query interface (app/store.py). The service
    never reaches for a global session.
  - `today` is a zero-argument callable. It frames "current month" and
    decides which incentives are in effect.
  - `max_workers` sizes the thread pool used for read fan-out. The pool is
    started on the first report and is the only state the service holds;
    close() shuts it down.

Read fan-out:
    Independent reads for one report (group row, active members,
    purchases, realizations, open members, incentive catalogue) are
    submitted together and joined before anything derived from more than
    one of them is computed. Per-member sums follow the member list.

Write paths:
    Every check runs before the first write. After that, writes are single
    committed statements; see services/incentive_cascade.py for what
    happens when one of them fails.
"""

from __future__ import annotations

import calendar
import logging
import threading
import uuid
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from datetime import date
from decimal import Decimal, InvalidOperation

from sqlalchemy.exc import IntegrityError

from roomledger.app.errors import AppError, ErrorCode
from roomledger.app.records import (
    CENT,
    MAX_AMOUNT,
    GroupSnapshot,
    IncentiveDefinitionRecord,
    MembershipInterval,
    PurchaseReceipt,
    RealizationRecord,
    SettlementReport,
    TransactionSummary,
    decode_id,
    decode_optional_date,
    group_from_row,
    incentive_from_row,
    member_from_row,
)
from roomledger.app.services import (
    expense_aggregator,
    incentive_cascade,
    membership_ledger,
    settlement_calculator,
)

logger = logging.getLogger(__name__)


# ── Input checks ───────────────────────────────────────────────────────────

def _validate_amount(amount, field: str = "amount") -> Decimal:
    """
    Money must arrive as Decimal, int or numeric text. Never float.
    Negative values, values above MAX_AMOUNT and more than 2 decimal places
    are rejected.
    """
    if isinstance(amount, (bool, float)) or amount is None:
        raise AppError(
            ErrorCode.INVALID_FIELD,
            f"{field} must be a decimal amount, got {type(amount).__name__}.",
            400,
            field=field,
        )
    try:
        value = amount if isinstance(amount, Decimal) else Decimal(str(amount).strip())
    except InvalidOperation:
        raise AppError(
            ErrorCode.INVALID_FIELD,
            f"{field} is not a valid amount.",
            400,
            field=field,
        ) from None
    if not value.is_finite():
        raise AppError(ErrorCode.INVALID_FIELD, f"{field} must be finite.", 400, field=field)
    if value < 0:
        raise AppError(ErrorCode.INVALID_FIELD, f"{field} must be zero or more.", 400, field=field)
    if value > MAX_AMOUNT:
        raise AppError(
            ErrorCode.INVALID_FIELD,
            f"{field} must be at most {MAX_AMOUNT}.",
            400,
            field=field,
        )
    try:
        quantized = value.quantize(CENT)
    except InvalidOperation:
        raise AppError(ErrorCode.INVALID_FIELD, f"{field} is not a valid amount.", 400, field=field) from None
    if value != quantized:
        raise AppError(
            ErrorCode.INVALID_AMOUNT_PRECISION,
            f"{field} must have at most 2 decimal places.",
            400,
            field=field,
        )
    return quantized


def month_bounds(day: date) -> tuple[date, date]:
    """First and last calendar day of the month containing `day`."""
    last = calendar.monthrange(day.year, day.month)[1]
    return day.replace(day=1), day.replace(day=last)


# ── Service ────────────────────────────────────────────────────────────────

class LedgerService:

    def __init__(
            self,
            store,
            today: Callable[[], date] = date.today,
            max_workers: int = 4,
    ) -> None:
        self.store = store
        self._today = today
        self._max_workers = max_workers
        self._executor: ThreadPoolExecutor | None = None
        self._executor_lock = threading.Lock()

    def today(self) -> date:
        return self._today()

    # ── Lifecycle ──────────────────────────────────────────────────────────

    @property
    def executor(self) -> ThreadPoolExecutor:
        """Read pool, started on first use."""
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self._max_workers,
                    thread_name_prefix="roomledger-read",
                )
            return self._executor

    def close(self) -> None:
        """Shuts the read pool down. A later read starts a fresh one."""
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def __enter__(self) -> "LedgerService":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # ── Existence checks ───────────────────────────────────────────────────

    def _require_user(self, user_id: uuid.UUID):
        row = self.store.get_user(user_id)
        if row is None:
            raise AppError(ErrorCode.USER_NOT_FOUND, f"User {user_id} does not exist.", 404)
        return row

    def _require_user_exists(self, user_id: uuid.UUID) -> None:
        if not self.store.user_exists(user_id):
            raise AppError(ErrorCode.USER_NOT_FOUND, f"User {user_id} does not exist.", 404)

    def _require_group(self, group_id: uuid.UUID):
        row = self.store.get_group(group_id)
        if row is None:
            raise AppError(ErrorCode.GROUP_NOT_FOUND, f"Group {group_id} does not exist.", 404)
        return group_from_row(row)

    def _require_group_exists(self, group_id: uuid.UUID) -> None:
        if not self.store.group_exists(group_id):
            raise AppError(ErrorCode.GROUP_NOT_FOUND, f"Group {group_id} does not exist.", 404)

    def _require_open_member(self, user_id: uuid.UUID, group_id: uuid.UUID) -> None:
        if not membership_ledger.is_active_member(user_id, group_id, self.store):
            raise AppError(
                ErrorCode.NOT_A_MEMBER,
                f"User {user_id} is not an active member of group {group_id}.",
                422,
            )

    # ── Reads ──────────────────────────────────────────────────────────────

    def active_member_count(self, group_id: uuid.UUID, start: date, end: date) -> int:
        membership_ledger.validate_range(start, end)
        self._require_group_exists(group_id)
        return membership_ledger.active_member_count(group_id, start, end, self.store)

    def group_expense_total(self, group_id: uuid.UUID, start: date, end: date) -> Decimal:
        membership_ledger.validate_range(start, end)
        self._require_group_exists(group_id)
        return expense_aggregator.group_expense_total(group_id, start, end, self.store)

    def transaction_records(
            self,
            group_id: uuid.UUID,
            start: date,
            end: date,
    ) -> expense_aggregator.TransactionStream:
        membership_ledger.validate_range(start, end)
        self._require_group_exists(group_id)
        return expense_aggregator.transaction_records(group_id, start, end, self.store)

    def settlement(self, group_id: uuid.UUID, start: date, end: date) -> SettlementReport:
        """
        Settlement for [start, end]. Raises NO_ACTIVE_MEMBERS when nobody
        was a member during the period.
        """
        membership_ledger.validate_range(start, end)
        pool = self.executor

        exists_f = pool.submit(self.store.group_exists, group_id)
        members_f = pool.submit(
            membership_ledger.active_members, group_id, start, end, self.store)
        purchases_f = pool.submit(
            expense_aggregator.purchases_in_range, group_id, start, end, self.store)
        realizations_f = pool.submit(
            expense_aggregator.realizations_in_range, group_id, start, end, self.store)

        if not exists_f.result():
            raise AppError(ErrorCode.GROUP_NOT_FOUND, f"Group {group_id} does not exist.", 404)

        report = settlement_calculator.build_settlement(
            group_id,
            start,
            end,
            members_f.result(),
            purchases_f.result(),
            realizations_f.result(),
        )
        logger.debug(
            "Settlement for group %s %s..%s: total=%s share=%s members=%d",
            group_id, start, end, report.total, report.group_share, report.member_count,
        )
        return report

    def range_snapshot(self, group_id: uuid.UUID, start: date, end: date) -> GroupSnapshot:
        """
        Group metadata, open members, the incentive catalogue and the
        transaction summary for [start, end].

        A period without active members still yields a snapshot; its
        summary carries no settlement (group_share None, no rows).
        """
        membership_ledger.validate_range(start, end)
        today = self.today()
        pool = self.executor

        group_f = pool.submit(self.store.get_group, group_id)
        open_members_f = pool.submit(self.store.list_open_members, group_id)
        incentives_f = pool.submit(self.store.list_incentives, group_id)
        members_f = pool.submit(
            membership_ledger.active_members, group_id, start, end, self.store)
        purchases_f = pool.submit(
            expense_aggregator.purchases_in_range, group_id, start, end, self.store)
        realizations_f = pool.submit(
            expense_aggregator.realizations_in_range, group_id, start, end, self.store)

        group_row = group_f.result()
        if group_row is None:
            raise AppError(ErrorCode.GROUP_NOT_FOUND, f"Group {group_id} does not exist.", 404)

        members = members_f.result()
        purchases = purchases_f.result()
        realizations = realizations_f.result()

        report = None
        if members:
            report = settlement_calculator.build_settlement(
                group_id, start, end, members, purchases, realizations)

        summary = TransactionSummary(
            period_from=start,
            period_to=end,
            breakdown=expense_aggregator.summarize(purchases, realizations),
            records=tuple(expense_aggregator.merge_transactions(purchases, realizations)),
            settlement=report,
        )

        catalogue = [incentive_from_row(row) for row in incentives_f.result()]
        return GroupSnapshot(
            group=group_from_row(group_row),
            members=tuple(member_from_row(row) for row in open_members_f.result()),
            incentives=tuple(i for i in catalogue if not i.is_expired_on(today)),
            transactions=summary,
        )

    def current_month_snapshot(self, group_id: uuid.UUID) -> GroupSnapshot:
        start, end = month_bounds(self.today())
        return self.range_snapshot(group_id, start, end)

    def groups_for_user(self, user_id: uuid.UUID) -> list[uuid.UUID]:
        """
        Ids of the groups where the user holds an open membership.

        Ids only; snapshots are fetched per group with current_month_snapshot().
        """
        self._require_user_exists(user_id)
        return [decode_id(g) for g in self.store.list_open_group_ids(user_id)]

    # ── Writes: purchases ──────────────────────────────────────────────────

    def record_purchase(
            self,
            user_id: uuid.UUID,
            group_id: uuid.UUID,
            amount,
            store: str = "",
            day: date | None = None,
            notes: str = "",
    ) -> PurchaseReceipt:
        """
        Records a purchase by an active member.

        Order: validate amount, user, group, membership; run the incentive
        cascade; insert the purchase. The cascade always runs first.
        """
        value = _validate_amount(amount)
        self._require_user_exists(user_id)
        self._require_group_exists(group_id)
        self._require_open_member(user_id, group_id)

        today = self.today()
        purchase_date = day or today
        store_name = store or ""
        notes = notes or ""

        cascaded = incentive_cascade.on_purchase_recorded(
            user_id, group_id, purchase_date, self.store, today)

        self.store.insert_purchase(
            user_id, group_id, purchase_date, value, store=store_name, notes=notes)
        logger.info(
            "Purchase recorded: user=%s group=%s date=%s amount=%s cascaded=%d",
            user_id, group_id, purchase_date.isoformat(), value, len(cascaded),
        )
        return PurchaseReceipt(
            user_id=user_id,
            group_id=group_id,
            date=purchase_date,
            amount=value,
            store=store_name,
            notes=notes,
            cascaded=tuple(cascaded),
        )

    # ── Writes: incentives ─────────────────────────────────────────────────

    def record_incentive_definition(
            self,
            group_id: uuid.UUID,
            name: str,
            amount,
            effective_from: date | None = None,
            effective_until: date | None = None,
            on_purchase: bool = False,
            description: str = "",
    ) -> IncentiveDefinitionRecord:
        """Adds an incentive to the group's catalogue. Never cascades."""
        value = _validate_amount(amount)
        self._require_group_exists(group_id)

        effective_from = effective_from or self.today()
        if effective_until is not None and effective_until <= effective_from:
            raise AppError(
                ErrorCode.INVALID_RANGE,
                "effective_until must be after effective_from.",
                400,
                field="effective_until",
            )
        if self.store.incentive_name_taken(group_id, name):
            raise AppError(
                ErrorCode.DUPLICATE_INCENTIVE,
                f"Group {group_id} already has an incentive named '{name}'.",
                409,
                field="name",
            )

        try:
            incentive_id = self.store.insert_incentive(
                group_id,
                name,
                value,
                effective_from,
                on_purchase=bool(on_purchase),
                description=description or "",
                effective_until=effective_until,
            )
        except IntegrityError as exc:
            raise AppError(
                ErrorCode.DUPLICATE_INCENTIVE,
                f"Group {group_id} already has an incentive named '{name}'.",
                409,
                field="name",
            ) from exc

        logger.info("Incentive %s (%s) defined for group %s", incentive_id, name, group_id)
        return IncentiveDefinitionRecord(
            id=incentive_id,
            group_id=group_id,
            name=name,
            description=description or "",
            amount=value,
            effective_from=effective_from,
            effective_until=effective_until,
            on_purchase=bool(on_purchase),
        )

    def record_incentive_realization(
            self,
            user_id: uuid.UUID,
            incentive_id: uuid.UUID,
            day: date | None = None,
            notes: str = "",
    ) -> RealizationRecord:
        """Manual realization. The user must be an open member of the incentive's group."""
        user = self._require_user(user_id)
        row = self.store.get_incentive(incentive_id)
        if row is None:
            raise AppError(
                ErrorCode.INCENTIVE_NOT_FOUND,
                f"Incentive {incentive_id} does not exist.",
                404,
            )
        incentive = incentive_from_row(row)
        self._require_open_member(user_id, incentive.group_id)

        realized_on = day or self.today()
        notes = notes or ""
        try:
            self.store.insert_realization(user_id, incentive.id, realized_on, notes=notes)
        except IntegrityError as exc:
            raise AppError(
                ErrorCode.INCENTIVE_NOT_FOUND,
                f"Incentive {incentive_id} no longer exists.",
                404,
            ) from exc

        logger.info(
            "Incentive %s realized by user %s on %s",
            incentive.id, user_id, realized_on.isoformat(),
        )
        return RealizationRecord(
            user_id=user_id,
            username=user["username"],
            incentive_id=incentive.id,
            incentive_name=incentive.name,
            group_id=incentive.group_id,
            date=realized_on,
            amount=incentive.amount,
            notes=notes,
        )

    # ── Writes: membership ─────────────────────────────────────────────────

    def join_group(
            self,
            user_id: uuid.UUID,
            group_id: uuid.UUID,
            on: date | None = None,
    ) -> MembershipInterval:
        """
        Opens a new membership interval.

        Checks, in order: user exists, group exists, no open interval yet,
        join date after the user's last leave date in the group, capacity,
        lock status. Intervals of one user in one group never overlap.
        """
        user = self._require_user(user_id)
        group = self._require_group(group_id)

        if self.store.has_open_membership(user_id, group_id):
            raise AppError(
                ErrorCode.ALREADY_MEMBER,
                f"User {user_id} is already a member of group {group_id}.",
                409,
            )

        joined_on = on or self.today()
        last_left = decode_optional_date(self.store.latest_left_on(user_id, group_id))
        if last_left is not None and joined_on <= last_left:
            raise AppError(
                ErrorCode.INVALID_RANGE,
                f"User {user_id} left group {group_id} on {last_left.isoformat()}; "
                f"a new membership must start after that.",
                400,
                field="date",
            )

        if group.max_members is not None and self.store.count_open_members(group_id) >= group.max_members:
            raise AppError(
                ErrorCode.GROUP_FULL,
                f"Group {group_id} is full ({group.max_members} members).",
                409,
            )
        if group.is_locked:
            raise AppError(ErrorCode.GROUP_LOCKED, f"Group {group_id} is locked.", 409)

        try:
            self.store.insert_membership(user_id, group_id, joined_on)
        except IntegrityError as exc:
            # Partial unique index on open intervals lost a race.
            raise AppError(
                ErrorCode.ALREADY_MEMBER,
                f"User {user_id} is already a member of group {group_id}.",
                409,
            ) from exc

        logger.info("User %s joined group %s on %s", user_id, group_id, joined_on.isoformat())
        return MembershipInterval(
            user_id=user_id,
            username=user["username"],
            group_id=group_id,
            joined_on=joined_on,
            left_on=None,
        )

    def leave_group(
            self,
            user_id: uuid.UUID,
            group_id: uuid.UUID,
            on: date | None = None,
    ) -> date:
        """
        Closes the open interval. Returns the leave date.

        The leave date may equal the join date (a one-day membership) but
        never precede it.
        """
        self._require_user_exists(user_id)
        self._require_group_exists(group_id)

        joined_on = decode_optional_date(self.store.open_membership_joined_on(user_id, group_id))
        if joined_on is None:
            raise AppError(
                ErrorCode.NOT_A_MEMBER,
                f"User {user_id} is not an active member of group {group_id}.",
                422,
            )
        left_on = on or self.today()
        if left_on < joined_on:
            raise AppError(
                ErrorCode.INVALID_RANGE,
                f"Leave date {left_on.isoformat()} is before the join date "
                f"{joined_on.isoformat()}.",
                400,
                field="date",
            )

        # Zero rows: the interval was closed concurrently.
        if self.store.close_membership(user_id, group_id, left_on) == 0:
            raise AppError(
                ErrorCode.NOT_A_MEMBER,
                f"User {user_id} is not an active member of group {group_id}.",
                422,
            )

        logger.info("User %s left group %s on %s", user_id, group_id, left_on.isoformat())
        return left_on
