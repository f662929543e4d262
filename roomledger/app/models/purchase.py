"""
models/purchase.py — Purchase table definition.

No business logic. No imports from services or routes.

Purchases are append-only facts: the engine inserts them and never updates
or deletes a row. `amount` uses the Money type (integer cents), never Float.
"""

from __future__ import annotations

import datetime
import uuid
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, ForeignKey, Index, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from roomledger.app.extensions import db
from roomledger.app.models.types import Money


class Purchase(db.Model):
    __tablename__ = "purchases"

    __table_args__ = (
        CheckConstraint("amount >= 0", name="ck_purchases_amount_non_negative"),
        Index("idx_purchases_group_date", "group_id", "date"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
    )

    group_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("groups.id", ondelete="RESTRICT"),
        nullable=False,
    )

    date: Mapped[datetime.date] = mapped_column(Date, nullable=False)

    store: Mapped[str | None] = mapped_column(String(30), nullable=True)

    amount: Mapped[Decimal] = mapped_column(Money, nullable=False)

    notes: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Purchase id={self.id} "
            f"group_id={self.group_id} "
            f"date={self.date} "
            f"amount={self.amount}>"
        )
