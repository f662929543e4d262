"""
services/incentive_cascade.py — Automatic incentive realizations on purchase.

When a member records a purchase, every incentive definition of the group
that is flagged on_purchase and is in effect today earns that member one
realization dated the purchase date. The cascade runs BEFORE the purchase
row is written and is invoked from exactly one place:
LedgerService.record_purchase(). Creating an incentive definition or a
manual realization never triggers it.

Failure policy (the store offers no multi-statement transactions):
  - First insert fails with IntegrityError: the definition vanished or a
    constraint no longer holds. Raised as INCENTIVE_NOT_FOUND and the
    purchase is aborted; nothing has been written yet.
  - Any later insert fails with a SQLAlchemyError: logged with traceback
    and skipped. Realizations already written stay; the purchase goes on.
  - A crash between the cascade and the purchase insert leaves
    realizations without a purchase. Accepted: realizations are facts on
    their own and are never rolled back.
"""

from __future__ import annotations

import logging
import uuid
from datetime import date

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from roomledger.app.errors import AppError, ErrorCode
from roomledger.app.records import IncentiveDefinitionRecord, incentive_from_row

logger = logging.getLogger(__name__)


def cascade_note(purchase_date: date) -> str:
    return f"Added by purchase on {purchase_date.isoformat()}."


def triggered_incentives(group_id: uuid.UUID, today: date, store) -> list[IncentiveDefinitionRecord]:
    """On-purchase definitions of the group that are in effect on `today`."""
    definitions = [incentive_from_row(row) for row in store.list_incentives(group_id)]
    return [d for d in definitions if d.on_purchase and d.is_effective_on(today)]


def on_purchase_recorded(
        user_id: uuid.UUID,
        group_id: uuid.UUID,
        purchase_date: date,
        store,
        today: date,
) -> list[IncentiveDefinitionRecord]:
    """
    Writes one realization per triggered incentive for `user_id`.

    Returns the definitions that were actually realized, in catalogue
    order. Raises AppError(INCENTIVE_NOT_FOUND) only when the first insert
    hits an integrity error.
    """
    note = cascade_note(purchase_date)
    realized: list[IncentiveDefinitionRecord] = []

    for position, incentive in enumerate(triggered_incentives(group_id, today, store)):
        try:
            store.insert_realization(user_id, incentive.id, purchase_date, notes=note)
        except IntegrityError as exc:
            if position == 0:
                raise AppError(
                    ErrorCode.INCENTIVE_NOT_FOUND,
                    f"Incentive '{incentive.name}' could not be applied to this "
                    f"purchase; the purchase was not recorded.",
                    404,
                ) from exc
            logger.warning(
                "Skipped cascade of incentive %s for user %s: %s",
                incentive.id, user_id, exc.orig, exc_info=True,
            )
            continue
        except SQLAlchemyError:
            if position == 0:
                raise
            logger.warning(
                "Skipped cascade of incentive %s for user %s",
                incentive.id, user_id, exc_info=True,
            )
            continue

        realized.append(incentive)
        logger.info(
            "Cascaded incentive %s (%s) to user %s for purchase on %s",
            incentive.id, incentive.name, user_id, purchase_date.isoformat(),
        )

    return realized
