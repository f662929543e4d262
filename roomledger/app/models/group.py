"""
models/group.py — Group table definition.

No business logic. No imports from services or routes.

A locked group rejects new joins (GROUP_LOCKED). max_members is an optional
cap on concurrently open memberships (GROUP_FULL). Changing the status is an
admin action outside the ledger engine.
"""

from __future__ import annotations

import enum
import uuid
from datetime import datetime

from sqlalchemy import DateTime, Enum, Integer, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from roomledger.app.extensions import db
from roomledger.app.models.types import enum_values


class GroupStatus(str, enum.Enum):
    OPEN   = "open"
    LOCKED = "locked"


class Group(db.Model):
    # 'groups' is a reserved word in some SQL dialects; SQLAlchemy quotes it.
    __tablename__ = "groups"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    name: Mapped[str] = mapped_column(String(30), nullable=False)

    description: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    # Stored as VARCHAR + CHECK so the same model works on SQLite and PostgreSQL.
    status: Mapped[GroupStatus] = mapped_column(
        Enum(
            GroupStatus,
            name="group_status_enum",
            native_enum=False,
            create_constraint=True,
            values_callable=enum_values,
        ),
        nullable=False,
        default=GroupStatus.OPEN,
        server_default=GroupStatus.OPEN.value,
    )

    max_members: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    # ── Relationships ──────────────────────────────────────────────────────

    memberships: Mapped[list["Membership"]] = relationship(  # noqa: F821
        "Membership",
        back_populates="group",
    )

    incentives: Mapped[list["IncentiveDefinition"]] = relationship(  # noqa: F821
        "IncentiveDefinition",
        back_populates="group",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Group id={self.id} name={self.name!r} status={self.status}>"
