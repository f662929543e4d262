"""Initial schema — all ledger tables, constraints, and indexes.

Revision: 001_initial_schema
Created:  2026-10-18

Append-only: this file must never be edited after it has been applied to
any database. Schema changes go into a NEW migration file.

Creation order (FK dependencies):
  users → groups → memberships → purchases → incentives_available
  → incentives

Money columns hold integer cents (BIGINT); see models/types.py.

ON DELETE policies:
  every foreign key → RESTRICT. Memberships, purchases and realizations
  are never deleted, so nothing they reference may be deleted either.
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

# ── Alembic revision identifiers ──────────────────────────────────────────
revision: str = "001_initial_schema"
down_revision: str | None = None      # first migration
branch_labels: tuple | None = None
depends_on: tuple | None = None


def upgrade() -> None:

    # ── users ──────────────────────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("username", sa.String(30), nullable=False),
        sa.Column("first_name", sa.String(30), nullable=False, server_default=""),
        sa.Column("last_name", sa.String(30), nullable=False, server_default=""),
        sa.Column("email", sa.String(60), nullable=False),
        sa.Column(
            "date_joined",
            sa.Date(),
            nullable=False,
            server_default=sa.func.current_date(),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
        sa.UniqueConstraint("username", name="uq_users_username"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )

    # ── groups ─────────────────────────────────────────────────────────────
    # status is VARCHAR + CHECK rather than a native enum type.
    op.create_table(
        "groups",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(30), nullable=False),
        sa.Column("description", sa.String(1024), nullable=True),
        sa.Column("status", sa.String(6), nullable=False, server_default="open"),
        sa.Column("max_members", sa.Integer(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.PrimaryKeyConstraint("id", name="pk_groups"),
        sa.CheckConstraint(
            "status IN ('open', 'locked')",
            name="group_status_enum",
        ),
    )

    # ── memberships ────────────────────────────────────────────────────────
    op.create_table(
        "memberships",
        sa.Column("id", sa.Integer(), nullable=False, autoincrement=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("group_id", sa.Uuid(), nullable=False),
        sa.Column("joined_on", sa.Date(), nullable=False),
        sa.Column("left_on", sa.Date(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_memberships"),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"],
            name="fk_memberships_user_id",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["group_id"], ["groups.id"],
            name="fk_memberships_group_id",
            ondelete="RESTRICT",
        ),
    )
    op.create_index("ix_memberships_user_id", "memberships", ["user_id"])
    op.create_index(
        "idx_memberships_group_span",
        "memberships",
        ["group_id", "joined_on", "left_on"],
    )
    # At most one open interval per (user, group).
    op.create_index(
        "uq_memberships_open_interval",
        "memberships",
        ["user_id", "group_id"],
        unique=True,
        postgresql_where=sa.text("left_on IS NULL"),
        sqlite_where=sa.text("left_on IS NULL"),
    )

    # ── purchases ──────────────────────────────────────────────────────────
    op.create_table(
        "purchases",
        sa.Column("id", sa.Integer(), nullable=False, autoincrement=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("group_id", sa.Uuid(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("store", sa.String(30), nullable=True),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("notes", sa.String(1024), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_purchases"),
        sa.CheckConstraint("amount >= 0", name="ck_purchases_amount_non_negative"),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"],
            name="fk_purchases_user_id",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["group_id"], ["groups.id"],
            name="fk_purchases_group_id",
            ondelete="RESTRICT",
        ),
    )
    op.create_index("idx_purchases_group_date", "purchases", ["group_id", "date"])

    # ── incentives_available (definitions) ─────────────────────────────────
    op.create_table(
        "incentives_available",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("group_id", sa.Uuid(), nullable=False),
        sa.Column("name", sa.String(30), nullable=False),
        sa.Column("description", sa.String(1024), nullable=True),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("effective_from", sa.Date(), nullable=False),
        sa.Column("effective_until", sa.Date(), nullable=True),
        sa.Column("on_purchase", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.PrimaryKeyConstraint("id", name="pk_incentives_available"),
        sa.UniqueConstraint("group_id", "name", name="uq_incentives_available_group_name"),
        sa.ForeignKeyConstraint(
            ["group_id"], ["groups.id"],
            name="fk_incentives_available_group_id",
            ondelete="RESTRICT",
        ),
    )
    op.create_index("ix_incentives_available_group_id", "incentives_available", ["group_id"])

    # ── incentives (realizations) ──────────────────────────────────────────
    op.create_table(
        "incentives",
        sa.Column("id", sa.Integer(), nullable=False, autoincrement=True),
        sa.Column("user_id", sa.Uuid(), nullable=False),
        sa.Column("incentive_id", sa.Uuid(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("notes", sa.String(1024), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_incentives"),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"],
            name="fk_incentives_user_id",
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(
            ["incentive_id"], ["incentives_available.id"],
            name="fk_incentives_incentive_id",
            ondelete="RESTRICT",
        ),
    )
    op.create_index("idx_incentives_incentive_date", "incentives", ["incentive_id", "date"])


def downgrade() -> None:
    """Drop everything in reverse dependency order."""
    op.drop_index("idx_incentives_incentive_date", table_name="incentives")
    op.drop_table("incentives")

    op.drop_index("ix_incentives_available_group_id", table_name="incentives_available")
    op.drop_table("incentives_available")

    op.drop_index("idx_purchases_group_date", table_name="purchases")
    op.drop_table("purchases")

    op.drop_index("uq_memberships_open_interval", table_name="memberships")
    op.drop_index("idx_memberships_group_span", table_name="memberships")
    op.drop_index("ix_memberships_user_id", table_name="memberships")
    op.drop_table("memberships")

    op.drop_table("groups")
    op.drop_table("users")
