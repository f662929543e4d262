"""
models/incentive.py — Incentive definition and realization tables.

No business logic. No imports from services or routes.

IncentiveDefinition ("incentives_available"):
  A fixed credit a group offers its members. UNIQUE(group_id, name).
  `on_purchase` marks definitions that the purchase cascade applies
  automatically.

IncentiveRealization ("incentives"):
  One instance of a member earning a definition's amount on a date.
  Append-only. The realized amount is always read through the definition.
"""

from __future__ import annotations

import datetime
import uuid
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    Date,
    ForeignKey,
    Index,
    String,
    UniqueConstraint,
    Uuid,
    false,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from roomledger.app.extensions import db
from roomledger.app.models.types import Money


class IncentiveDefinition(db.Model):
    __tablename__ = "incentives_available"

    __table_args__ = (
        UniqueConstraint("group_id", "name", name="uq_incentives_available_group_name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    group_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("groups.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    name: Mapped[str] = mapped_column(String(30), nullable=False)

    description: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)

    effective_from: Mapped[datetime.date] = mapped_column(Date, nullable=False)

    # NULL = never expires.
    effective_until: Mapped[datetime.date | None] = mapped_column(Date, nullable=True)

    on_purchase: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    group: Mapped["Group"] = relationship(  # noqa: F821
        "Group",
        back_populates="incentives",
    )

    realizations: Mapped[list["IncentiveRealization"]] = relationship(
        "IncentiveRealization",
        back_populates="incentive",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<IncentiveDefinition id={self.id} "
            f"group_id={self.group_id} "
            f"name={self.name!r} amount={self.amount}>"
        )


class IncentiveRealization(db.Model):
    __tablename__ = "incentives"

    __table_args__ = (
        Index("idx_incentives_incentive_date", "incentive_id", "date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    incentive_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("incentives_available.id", ondelete="RESTRICT"),
        nullable=False,
    )

    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)

    notes: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    # ── Relationships ──────────────────────────────────────────────────────

    incentive: Mapped["IncentiveDefinition"] = relationship(
        "IncentiveDefinition",
        back_populates="realizations",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<IncentiveRealization id={self.id} "
            f"user_id={self.user_id} "
            f"incentive_id={self.incentive_id} "
            f"date={self.date}>"
        )
