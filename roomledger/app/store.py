"""
store.py — LedgerStore: the query interface the engine consumes.

The engine never holds an ambient database handle. A LedgerStore is built
from a SQLAlchemy sessionmaker and passed to the services explicitly.

Rules:
  - Every method opens its own short-lived Session. Independent reads can
    therefore run on different threads at the same time.
  - Reads are range scans and point lookups. They return plain row mappings
    (or scalars); callers decode rows through app/records.py before any
    business logic touches them.
  - Every write is a single INSERT or UPDATE committed on its own. The store
    offers no multi-statement transactions to the engine.
  - Errors from the driver (IntegrityError, OperationalError) propagate
    unchanged; services decide what they mean.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from datetime import date
from decimal import Decimal

from sqlalchemy import exists, func, or_, select, update
from sqlalchemy.orm import Session, sessionmaker

from roomledger.app.models.group import Group, GroupStatus
from roomledger.app.models.incentive import IncentiveDefinition, IncentiveRealization
from roomledger.app.models.membership import Membership
from roomledger.app.models.purchase import Purchase
from roomledger.app.models.user import User


class LedgerStore:

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    # ── Point lookups ──────────────────────────────────────────────────────

    def get_group(self, group_id: uuid.UUID) -> Mapping | None:
        stmt = select(
            Group.id,
            Group.name,
            Group.description,
            Group.status,
            Group.max_members,
            Group.created_at,
        ).where(Group.id == group_id)
        with self._session_factory() as session:
            return session.execute(stmt).mappings().first()

    def get_user(self, user_id: uuid.UUID) -> Mapping | None:
        stmt = select(
            User.id,
            User.username,
            User.first_name,
            User.last_name,
        ).where(User.id == user_id)
        with self._session_factory() as session:
            return session.execute(stmt).mappings().first()

    def user_exists(self, user_id: uuid.UUID) -> bool:
        stmt = select(exists().where(User.id == user_id))
        with self._session_factory() as session:
            return bool(session.execute(stmt).scalar())

    def group_exists(self, group_id: uuid.UUID) -> bool:
        stmt = select(exists().where(Group.id == group_id))
        with self._session_factory() as session:
            return bool(session.execute(stmt).scalar())

    def get_incentive(self, incentive_id: uuid.UUID) -> Mapping | None:
        stmt = _incentive_columns().where(IncentiveDefinition.id == incentive_id)
        with self._session_factory() as session:
            return session.execute(stmt).mappings().first()

    def incentive_name_taken(self, group_id: uuid.UUID, name: str) -> bool:
        stmt = select(exists().where(
            IncentiveDefinition.group_id == group_id,
            IncentiveDefinition.name == name,
        ))
        with self._session_factory() as session:
            return bool(session.execute(stmt).scalar())

    def has_open_membership(self, user_id: uuid.UUID, group_id: uuid.UUID) -> bool:
        stmt = select(exists().where(
            Membership.user_id == user_id,
            Membership.group_id == group_id,
            Membership.left_on.is_(None),
        ))
        with self._session_factory() as session:
            return bool(session.execute(stmt).scalar())

    def open_membership_joined_on(self, user_id: uuid.UUID, group_id: uuid.UUID) -> date | None:
        """joined_on of the user's open interval in the group, or None."""
        stmt = select(Membership.joined_on).where(
            Membership.user_id == user_id,
            Membership.group_id == group_id,
            Membership.left_on.is_(None),
        )
        with self._session_factory() as session:
            return session.execute(stmt).scalar()

    def latest_left_on(self, user_id: uuid.UUID, group_id: uuid.UUID) -> date | None:
        """Most recent left_on among the user's closed intervals in the group."""
        stmt = select(func.max(Membership.left_on)).where(
            Membership.user_id == user_id,
            Membership.group_id == group_id,
        )
        with self._session_factory() as session:
            return session.execute(stmt).scalar()

    def count_open_members(self, group_id: uuid.UUID) -> int:
        stmt = select(func.count(func.distinct(Membership.user_id))).where(
            Membership.group_id == group_id,
            Membership.left_on.is_(None),
        )
        with self._session_factory() as session:
            return int(session.execute(stmt).scalar_one())

    # ── Range scans ────────────────────────────────────────────────────────

    def list_membership_intervals(
            self,
            group_id: uuid.UUID,
            start: date,
            end: date,
    ) -> list[Mapping]:
        """Intervals with joined_on <= end and (left_on IS NULL or left_on >= start)."""
        stmt = (
            select(
                Membership.user_id,
                User.username,
                Membership.group_id,
                Membership.joined_on,
                Membership.left_on,
            )
            .join(User, User.id == Membership.user_id)
            .where(
                Membership.group_id == group_id,
                Membership.joined_on <= end,
                or_(Membership.left_on.is_(None), Membership.left_on >= start),
            )
            .order_by(User.username.asc(), Membership.joined_on.asc())
        )
        with self._session_factory() as session:
            return list(session.execute(stmt).mappings().all())

    def list_open_members(self, group_id: uuid.UUID) -> list[Mapping]:
        stmt = (
            select(
                User.id.label("user_id"),
                User.username,
                User.first_name,
                User.last_name,
                Membership.joined_on,
            )
            .join(Membership, Membership.user_id == User.id)
            .where(
                Membership.group_id == group_id,
                Membership.left_on.is_(None),
            )
            .order_by(User.username.asc())
        )
        with self._session_factory() as session:
            return list(session.execute(stmt).mappings().all())

    def list_purchases(
            self,
            group_id: uuid.UUID,
            start: date,
            end: date,
            user_id: uuid.UUID | None = None,
    ) -> list[Mapping]:
        """Purchases with start <= date <= end, oldest first."""
        stmt = (
            select(
                Purchase.user_id,
                User.username,
                Purchase.group_id,
                Purchase.date,
                Purchase.amount,
                Purchase.store,
                Purchase.notes,
            )
            .join(User, User.id == Purchase.user_id)
            .where(
                Purchase.group_id == group_id,
                Purchase.date >= start,
                Purchase.date <= end,
            )
            .order_by(Purchase.date.asc(), Purchase.id.asc())
        )
        if user_id is not None:
            stmt = stmt.where(Purchase.user_id == user_id)
        with self._session_factory() as session:
            return list(session.execute(stmt).mappings().all())

    def list_realizations(
            self,
            group_id: uuid.UUID,
            start: date,
            end: date,
            user_id: uuid.UUID | None = None,
    ) -> list[Mapping]:
        """
        Incentive realizations with start <= date <= end, oldest first.

        The amount comes from the realization's definition; realizations do
        not carry an amount of their own.
        """
        stmt = (
            select(
                IncentiveRealization.user_id,
                User.username,
                IncentiveRealization.incentive_id,
                IncentiveDefinition.name.label("incentive_name"),
                IncentiveDefinition.group_id,
                IncentiveRealization.date,
                IncentiveDefinition.amount,
                IncentiveRealization.notes,
            )
            .join(
                IncentiveDefinition,
                IncentiveDefinition.id == IncentiveRealization.incentive_id,
            )
            .join(User, User.id == IncentiveRealization.user_id)
            .where(
                IncentiveDefinition.group_id == group_id,
                IncentiveRealization.date >= start,
                IncentiveRealization.date <= end,
            )
            .order_by(IncentiveRealization.date.asc(), IncentiveRealization.id.asc())
        )
        if user_id is not None:
            stmt = stmt.where(IncentiveRealization.user_id == user_id)
        with self._session_factory() as session:
            return list(session.execute(stmt).mappings().all())

    def list_incentives(self, group_id: uuid.UUID) -> list[Mapping]:
        stmt = (
            _incentive_columns()
            .where(IncentiveDefinition.group_id == group_id)
            .order_by(IncentiveDefinition.name.asc())
        )
        with self._session_factory() as session:
            return list(session.execute(stmt).mappings().all())

    def list_open_group_ids(self, user_id: uuid.UUID) -> list[uuid.UUID]:
        stmt = (
            select(Membership.group_id)
            .where(
                Membership.user_id == user_id,
                Membership.left_on.is_(None),
            )
            .order_by(Membership.joined_on.asc())
        )
        with self._session_factory() as session:
            return list(session.execute(stmt).scalars().all())

    # ── Single-record writes ───────────────────────────────────────────────

    def insert_user(
            self,
            username: str,
            email: str,
            first_name: str = "",
            last_name: str = "",
            user_id: uuid.UUID | None = None,
    ) -> uuid.UUID:
        new_id = user_id or uuid.uuid4()
        self._insert(User(
            id=new_id,
            username=username,
            email=email,
            first_name=first_name,
            last_name=last_name,
        ))
        return new_id

    def insert_group(
            self,
            name: str,
            description: str | None = None,
            status: GroupStatus = GroupStatus.OPEN,
            max_members: int | None = None,
            group_id: uuid.UUID | None = None,
    ) -> uuid.UUID:
        new_id = group_id or uuid.uuid4()
        self._insert(Group(
            id=new_id,
            name=name,
            description=description,
            status=status,
            max_members=max_members,
        ))
        return new_id

    def insert_membership(self, user_id: uuid.UUID, group_id: uuid.UUID, joined_on: date) -> None:
        self._insert(Membership(user_id=user_id, group_id=group_id, joined_on=joined_on))

    def close_membership(self, user_id: uuid.UUID, group_id: uuid.UUID, left_on: date) -> int:
        """Sets left_on on the open interval. Returns the number of rows closed."""
        stmt = (
            update(Membership)
            .where(
                Membership.user_id == user_id,
                Membership.group_id == group_id,
                Membership.left_on.is_(None),
            )
            .values(left_on=left_on)
        )
        with self._session_factory.begin() as session:
            return session.execute(stmt).rowcount

    def insert_purchase(
            self,
            user_id: uuid.UUID,
            group_id: uuid.UUID,
            day: date,
            amount: Decimal,
            store: str = "",
            notes: str = "",
    ) -> None:
        self._insert(Purchase(
            user_id=user_id,
            group_id=group_id,
            date=day,
            amount=amount,
            store=store,
            notes=notes,
        ))

    def insert_incentive(
            self,
            group_id: uuid.UUID,
            name: str,
            amount: Decimal,
            effective_from: date,
            on_purchase: bool = False,
            description: str = "",
            effective_until: date | None = None,
    ) -> uuid.UUID:
        new_id = uuid.uuid4()
        self._insert(IncentiveDefinition(
            id=new_id,
            group_id=group_id,
            name=name,
            description=description,
            amount=amount,
            effective_from=effective_from,
            effective_until=effective_until,
            on_purchase=on_purchase,
        ))
        return new_id

    def insert_realization(
            self,
            user_id: uuid.UUID,
            incentive_id: uuid.UUID,
            day: date,
            notes: str = "",
    ) -> None:
        self._insert(IncentiveRealization(
            user_id=user_id,
            incentive_id=incentive_id,
            date=day,
            notes=notes,
        ))

    def _insert(self, row) -> None:
        with self._session_factory.begin() as session:
            session.add(row)


def _incentive_columns():
    return select(
        IncentiveDefinition.id,
        IncentiveDefinition.group_id,
        IncentiveDefinition.name,
        IncentiveDefinition.description,
        IncentiveDefinition.amount,
        IncentiveDefinition.effective_from,
        IncentiveDefinition.effective_until,
        IncentiveDefinition.on_purchase,
    )
