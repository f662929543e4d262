"""
models/membership.py — Membership interval table definition.

No business logic. No imports from services or routes.

One row is one continuous interval of activity. A user may hold several
non-overlapping intervals per group (rejoin after leaving); rows are never
deleted, only closed by setting left_on.

At most one open interval (left_on IS NULL) per (user_id, group_id) is
enforced by a partial unique index, and again in ledger_service.join_group
before the insert is attempted.
"""

from __future__ import annotations

import uuid
from datetime import date

from sqlalchemy import Date, ForeignKey, Index, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from roomledger.app.extensions import db


class Membership(db.Model):
    __tablename__ = "memberships"

    __table_args__ = (
        Index(
            "uq_memberships_open_interval",
            "user_id",
            "group_id",
            unique=True,
            postgresql_where=text("left_on IS NULL"),
            sqlite_where=text("left_on IS NULL"),
        ),
        Index("idx_memberships_group_span", "group_id", "joined_on", "left_on"),
    )

    id: Mapped[int] = mapped_column(primary_key=True)

    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("users.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )

    group_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        ForeignKey("groups.id", ondelete="RESTRICT"),
        nullable=False,
    )

    joined_on: Mapped[date] = mapped_column(Date, nullable=False)

    # NULL while the interval is open.
    left_on: Mapped[date | None] = mapped_column(Date, nullable=True)

    # ── Relationships ──────────────────────────────────────────────────────

    user: Mapped["User"] = relationship(  # noqa: F821
        "User",
        back_populates="memberships",
    )

    group: Mapped["Group"] = relationship(  # noqa: F821
        "Group",
        back_populates="memberships",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return (
            f"<Membership id={self.id} "
            f"user_id={self.user_id} "
            f"group_id={self.group_id} "
            f"joined_on={self.joined_on} left_on={self.left_on}>"
        )
