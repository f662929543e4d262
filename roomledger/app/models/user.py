"""
models/user.py — User table definition.

No business logic. No imports from services or routes.
Profile mutation (password, username, email) belongs to the auth
collaborator. The engine reads this table; LedgerStore.insert_user exists
for seeding.
"""

from __future__ import annotations

import uuid
from datetime import date

from sqlalchemy import Date, String, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from roomledger.app.extensions import db


class User(db.Model):
    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )

    username: Mapped[str] = mapped_column(
        String(30),
        nullable=False,
        unique=True,
    )

    first_name: Mapped[str] = mapped_column(String(30), nullable=False, default="")
    last_name: Mapped[str] = mapped_column(String(30), nullable=False, default="")

    email: Mapped[str] = mapped_column(
        String(60),
        nullable=False,
        unique=True,
    )

    date_joined: Mapped[date] = mapped_column(
        Date,
        nullable=False,
        server_default=func.current_date(),
    )

    # ── Relationships ──────────────────────────────────────────────────────
    # Read-only navigation.

    memberships: Mapped[list["Membership"]] = relationship(  # noqa: F821
        "Membership",
        back_populates="user",
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<User id={self.id} username={self.username!r}>"
