"""
records.py — Typed ledger records and the row decoding boundary.

Storage rows arrive in whatever shape the driver produces: amounts as
Decimal, int or text; flags as bool or 0/1; identifiers as UUID objects,
raw 16-byte values or hex strings; dates as date, datetime or ISO text.
Every row is converted here, immediately after it is read, into a frozen
dataclass with exact types. Business logic in services/ only ever sees
these records.

Money is always a Decimal quantized to 2 places. float is rejected outright.
"""

from __future__ import annotations

import enum
import uuid
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
# Largest amount a DECIMAL(5,2) money column holds.
MAX_AMOUNT = Decimal("999.99")


# ── Scalar decoders ────────────────────────────────────────────────────────

def decode_money(value) -> Decimal:
    """Returns `value` as a 2-place Decimal. None decodes to 0.00."""
    if value is None:
        return ZERO
    if isinstance(value, bool) or isinstance(value, float):
        raise TypeError(f"Refusing to decode {type(value).__name__} {value!r} as money.")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value).strip())
    except InvalidOperation as exc:
        raise ValueError(f"{value!r} is not a monetary amount.") from exc
    return amount.quantize(CENT)


def decode_flag(value) -> bool:
    """Normalises bool / 0-1 integers / textual flags to bool."""
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, int):
        return value != 0
    text = str(value).strip().lower()
    if text in ("1", "true", "t", "yes", "y"):
        return True
    if text in ("0", "false", "f", "no", "n", ""):
        return False
    raise ValueError(f"{value!r} is not a boolean flag.")


def decode_id(value) -> uuid.UUID:
    """Accepts UUID, 16 raw bytes, or hex text (hyphenated or not)."""
    if isinstance(value, uuid.UUID):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        if len(raw) != 16:
            raise ValueError(f"Identifier must be 16 bytes, got {len(raw)}.")
        return uuid.UUID(bytes=raw)
    return uuid.UUID(str(value).strip())


def decode_date(value) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


def decode_optional_date(value) -> date | None:
    return None if value is None else decode_date(value)


def format_id(value: uuid.UUID) -> str:
    """Canonical boundary form: lowercase 8-4-4-4-12 hex."""
    return str(decode_id(value)).lower()


def _text(value) -> str:
    return "" if value is None else str(value)


# ── Records ────────────────────────────────────────────────────────────────

class TransactionKind(str, enum.Enum):
    PURCHASE  = "purchase"
    INCENTIVE = "incentive"


@dataclass(frozen=True)
class GroupRecord:
    id: uuid.UUID
    name: str
    description: str
    status: str
    max_members: int | None
    created_at: datetime | None

    @property
    def is_locked(self) -> bool:
        return self.status == "locked"

    def to_dict(self) -> dict:
        return {
            "group_id": format_id(self.id),
            "group_name": self.name,
            "description": self.description,
            "status": self.status,
            "max_members": self.max_members,
            "created": self.created_at.isoformat() if self.created_at else None,
        }


@dataclass(frozen=True)
class MemberRecord:
    """A user with a currently open membership interval."""
    user_id: uuid.UUID
    username: str
    first_name: str
    last_name: str
    joined_on: date

    def to_dict(self) -> dict:
        return {
            "user_id": format_id(self.user_id),
            "username": self.username,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "joined_group": self.joined_on,
        }


@dataclass(frozen=True)
class MembershipInterval:
    user_id: uuid.UUID
    username: str
    group_id: uuid.UUID
    joined_on: date
    left_on: date | None

    def overlaps(self, start: date, end: date) -> bool:
        """Active during [start, end] iff joined <= end and (open or left >= start)."""
        return self.joined_on <= end and (self.left_on is None or self.left_on >= start)

    @property
    def is_open(self) -> bool:
        return self.left_on is None


@dataclass(frozen=True)
class ActiveMember:
    """A user with at least one membership interval overlapping a period."""
    user_id: uuid.UUID
    username: str


@dataclass(frozen=True)
class IncentiveDefinitionRecord:
    id: uuid.UUID
    group_id: uuid.UUID
    name: str
    description: str
    amount: Decimal
    effective_from: date
    effective_until: date | None
    on_purchase: bool

    def is_effective_on(self, day: date) -> bool:
        return self.effective_from <= day and (
            self.effective_until is None or self.effective_until > day
        )

    def is_expired_on(self, day: date) -> bool:
        return self.effective_until is not None and self.effective_until <= day

    def to_dict(self) -> dict:
        return {
            "incentive_id": format_id(self.id),
            "incentive_name": self.name,
            "description": self.description,
            "amount": self.amount,
            "effective_date": self.effective_from,
            "effective_until": self.effective_until,
            "on_purchase": self.on_purchase,
        }


@dataclass(frozen=True)
class PurchaseRecord:
    user_id: uuid.UUID
    username: str
    group_id: uuid.UUID
    date: date
    amount: Decimal
    store: str
    notes: str


@dataclass(frozen=True)
class RealizationRecord:
    user_id: uuid.UUID
    username: str
    incentive_id: uuid.UUID
    incentive_name: str
    group_id: uuid.UUID
    date: date
    amount: Decimal
    notes: str


@dataclass(frozen=True)
class PurchaseReceipt:
    user_id: uuid.UUID
    group_id: uuid.UUID
    date: date
    amount: Decimal
    store: str
    notes: str
    cascaded: tuple[IncentiveDefinitionRecord, ...] = ()

    def to_dict(self) -> dict:
        return {
            "user_id": format_id(self.user_id),
            "group_id": format_id(self.group_id),
            "date": self.date,
            "amount": self.amount,
            "store": self.store,
            "notes": self.notes,
            "cascaded_incentives": [i.to_dict() for i in self.cascaded],
        }


@dataclass(frozen=True)
class TransactionRecord:
    kind: TransactionKind
    date: date
    user_id: uuid.UUID
    username: str
    amount: Decimal
    incentive_name: str | None = None
    store: str | None = None
    notes: str = ""

    @classmethod
    def from_purchase(cls, purchase: PurchaseRecord) -> "TransactionRecord":
        return cls(
            kind=TransactionKind.PURCHASE,
            date=purchase.date,
            user_id=purchase.user_id,
            username=purchase.username,
            amount=purchase.amount,
            store=purchase.store,
            notes=purchase.notes,
        )

    @classmethod
    def from_realization(cls, realization: RealizationRecord) -> "TransactionRecord":
        return cls(
            kind=TransactionKind.INCENTIVE,
            date=realization.date,
            user_id=realization.user_id,
            username=realization.username,
            amount=realization.amount,
            incentive_name=realization.incentive_name,
            notes=realization.notes,
        )

    def to_dict(self) -> dict:
        return {
            "type": self.kind.value,
            "date": self.date,
            "user_id": format_id(self.user_id),
            "username": self.username,
            "incentive_name": self.incentive_name,
            "amount": self.amount,
            "store": self.store,
            "notes": self.notes,
        }


@dataclass(frozen=True)
class ExpenseBreakdown:
    purchase_total: Decimal = ZERO
    incentive_total: Decimal = ZERO
    count_purchases: int = 0
    count_incentives: int = 0

    @property
    def total(self) -> Decimal:
        return self.purchase_total + self.incentive_total


@dataclass(frozen=True)
class MemberSettlement:
    user_id: uuid.UUID
    username: str
    total_purchases: Decimal
    count_purchases: int
    total_incentives: Decimal
    count_incentives: int
    total_contribution: Decimal
    owes: Decimal

    def to_dict(self) -> dict:
        data = asdict(self)
        data["user_id"] = format_id(self.user_id)
        return data


@dataclass(frozen=True)
class SettlementReport:
    group_id: uuid.UUID
    period_from: date
    period_to: date
    member_count: int
    total: Decimal
    group_share: Decimal
    count_purchases: int
    count_incentives: int
    per_member: tuple[MemberSettlement, ...] = field(default_factory=tuple)

    @property
    def remainder(self) -> Decimal:
        """Part of `total` that the floor share leaves undistributed."""
        return self.total - self.group_share * self.member_count

    def to_dict(self) -> dict:
        return {
            "group_id": format_id(self.group_id),
            "period_from": self.period_from,
            "period_to": self.period_to,
            "member_count": self.member_count,
            "total": self.total,
            "group_share": self.group_share,
            "remainder": self.remainder,
            "count_purchases": self.count_purchases,
            "count_incentives": self.count_incentives,
            "per_member": [m.to_dict() for m in self.per_member],
        }


@dataclass(frozen=True)
class TransactionSummary:
    period_from: date
    period_to: date
    breakdown: ExpenseBreakdown
    records: tuple[TransactionRecord, ...]
    settlement: SettlementReport | None

    def to_dict(self) -> dict:
        return {
            "period_from": self.period_from,
            "period_to": self.period_to,
            "count_purchases": self.breakdown.count_purchases,
            "count_incentives": self.breakdown.count_incentives,
            "purchase_total": self.breakdown.purchase_total,
            "incentive_total": self.breakdown.incentive_total,
            "total": self.breakdown.total,
            "count_records": len(self.records),
            "records": [r.to_dict() for r in self.records],
            "group_share": None if self.settlement is None else self.settlement.group_share,
            "settlements": [] if self.settlement is None else [m.to_dict() for m in self.settlement.per_member],
        }


@dataclass(frozen=True)
class GroupSnapshot:
    group: GroupRecord
    members: tuple[MemberRecord, ...]
    incentives: tuple[IncentiveDefinitionRecord, ...]
    transactions: TransactionSummary

    def to_dict(self) -> dict:
        data = self.group.to_dict()
        data.update({
            "count_members": len(self.members),
            "members": [m.to_dict() for m in self.members],
            "count_incentives_available": len(self.incentives),
            "incentives_available": [i.to_dict() for i in self.incentives],
            "transactions": self.transactions.to_dict(),
        })
        return data


# ── Row decoders ───────────────────────────────────────────────────────────
# One function per row shape returned by LedgerStore. Each accepts any
# Mapping (SQLAlchemy RowMapping, plain dict from a fake store).

def group_from_row(row: Mapping) -> GroupRecord:
    status = row["status"]
    max_members = row.get("max_members")
    return GroupRecord(
        id=decode_id(row["id"]),
        name=_text(row["name"]),
        description=_text(row.get("description")),
        status=_text(getattr(status, "value", status)),
        max_members=None if max_members is None else int(max_members),
        created_at=row.get("created_at"),
    )


def member_from_row(row: Mapping) -> MemberRecord:
    return MemberRecord(
        user_id=decode_id(row["user_id"]),
        username=_text(row["username"]),
        first_name=_text(row.get("first_name")),
        last_name=_text(row.get("last_name")),
        joined_on=decode_date(row["joined_on"]),
    )


def interval_from_row(row: Mapping) -> MembershipInterval:
    return MembershipInterval(
        user_id=decode_id(row["user_id"]),
        username=_text(row["username"]),
        group_id=decode_id(row["group_id"]),
        joined_on=decode_date(row["joined_on"]),
        left_on=decode_optional_date(row.get("left_on")),
    )


def incentive_from_row(row: Mapping) -> IncentiveDefinitionRecord:
    return IncentiveDefinitionRecord(
        id=decode_id(row["id"]),
        group_id=decode_id(row["group_id"]),
        name=_text(row["name"]),
        description=_text(row.get("description")),
        amount=decode_money(row["amount"]),
        effective_from=decode_date(row["effective_from"]),
        effective_until=decode_optional_date(row.get("effective_until")),
        on_purchase=decode_flag(row.get("on_purchase")),
    )


def purchase_from_row(row: Mapping) -> PurchaseRecord:
    return PurchaseRecord(
        user_id=decode_id(row["user_id"]),
        username=_text(row["username"]),
        group_id=decode_id(row["group_id"]),
        date=decode_date(row["date"]),
        amount=decode_money(row["amount"]),
        store=_text(row.get("store")),
        notes=_text(row.get("notes")),
    )


def realization_from_row(row: Mapping) -> RealizationRecord:
    return RealizationRecord(
        user_id=decode_id(row["user_id"]),
        username=_text(row["username"]),
        incentive_id=decode_id(row["incentive_id"]),
        incentive_name=_text(row["incentive_name"]),
        group_id=decode_id(row["group_id"]),
        date=decode_date(row["date"]),
        amount=decode_money(row["amount"]),
        notes=_text(row.get("notes")),
    )
