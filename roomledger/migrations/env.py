"""
roomledger/migrations/env.py — Alembic environment.

Uses DATABASE_URL (or TEST_DATABASE_URL when TEST_RUN=1) from the
environment / .env file, falling back to the active config class.
"""

from __future__ import annotations

import os
from logging.config import fileConfig

from alembic import context
from sqlalchemy import engine_from_config, pool

# Importing config loads .env before the URL is resolved.
from roomledger.config import ActiveConfig, TestingConfig, _normalise_db_url
from roomledger.app.extensions import db
from roomledger.app.models import (  # noqa: F401  populate db.metadata
    group,
    incentive,
    membership,
    purchase,
    user,
)

target_metadata = db.metadata

# ── Pick the right database URL ───────────────────────────────────────────
if os.getenv("TEST_RUN"):
    db_url = _normalise_db_url(os.getenv("TEST_DATABASE_URL") or TestingConfig.SQLALCHEMY_DATABASE_URI)
else:
    db_url = _normalise_db_url(os.getenv("DATABASE_URL") or ActiveConfig.SQLALCHEMY_DATABASE_URI)

# ── Alembic config ────────────────────────────────────────────────────────
config = context.config
config.set_main_option("sqlalchemy.url", db_url)

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def run_migrations_offline() -> None:
    context.configure(
        url=db_url,
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        render_as_batch=db_url.startswith("sqlite"),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    connectable = engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )
    with connectable.connect() as connection:
        context.configure(
            connection=connection,
            target_metadata=target_metadata,
            compare_type=True,
            render_as_batch=connection.dialect.name == "sqlite",
        )
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
