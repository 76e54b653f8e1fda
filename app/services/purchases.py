"""
Purchase confirmation.

The sale (card_store.SELL) and the order row are written in one transaction,
so a failed order insert also undoes the sale. Confirming cards that are
already sold to the same buyer is treated as a retry and returns the existing
order instead of failing.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from app.models import CardInventory, PurchaseOrder
from app.models.card_state import CardSold
from app.services import clock, order_store
from app.services.card_store import SELL, TransitionContext, apply_transition, get_cards
from app.services.errors import ReservationExpiredError, TransientStorageError
from app.services.order_store import OrderMeta
from app.services.reservations import normalize_buyer_id, normalize_card_numbers

logger = logging.getLogger(__name__)

RECONCILIATION_NOTE = "reconciliation: cards were sold without a purchase order"


@dataclass(frozen=True)
class PurchaseResult:
    order: PurchaseOrder
    card_numbers: list[int]
    already_confirmed: bool


def _is_sold_to(card: CardInventory | None, buyer_id: str) -> bool:
    if card is None:
        return False
    state = card.state
    return isinstance(state, CardSold) and state.by == buyer_id


def confirm_purchase(
    db: Session,
    card_numbers: Iterable[int],
    buyer_id: str,
    meta: OrderMeta,
    now: datetime | None = None,
) -> PurchaseResult:
    """Turn the buyer's live reservation on every requested card into a sale and record the order.

    Raises ReservationExpiredError naming the cards that are neither validly
    reserved by nor already sold to buyer_id; nothing is sold in that case.
    """
    numbers = normalize_card_numbers(card_numbers)
    buyer_id = normalize_buyer_id(buyer_id)
    now = now or clock.utcnow()
    ctx = TransitionContext(now=now, buyer_id=buyer_id)

    try:
        # Locked so a concurrent confirmation of the same cards finishes before this read.
        previously_sold = {
            card.card_number
            for card in get_cards(db, numbers, refresh=True, lock=True)
            if _is_sold_to(card, buyer_id)
        }

        changed = apply_transition(db, numbers, SELL, ctx)
        cards = get_cards(db, numbers, refresh=True)
        by_number = {card.card_number: card for card in cards}
        not_owned = [n for n in numbers if not _is_sold_to(by_number.get(n), buyer_id)]
        if not_owned:
            db.rollback()
            logger.info(
                "Purchase by %s rejected, reservation expired or missing for cards %s",
                buyer_id,
                not_owned,
            )
            raise ReservationExpiredError(not_owned)

        # Nothing changed but every card is sold to the buyer: an earlier confirmation won.
        fresh = [n for n in numbers if n not in previously_sold] if changed else []
        if changed and changed != len(fresh):
            logger.critical(
                "Sale of cards %s to %s changed %s row(s) but %s card(s) were newly sold",
                numbers,
                buyer_id,
                changed,
                len(fresh),
            )
        if fresh:
            order = order_store.create_order(db, buyer_id, [by_number[n] for n in fresh], meta)
            already_confirmed = False
        else:
            order = order_store.find_order_for_cards(db, buyer_id, numbers)
            already_confirmed = True
            if order is None:
                logger.critical(
                    "Cards %s are sold to %s but no purchase order references them; creating reconciliation order",
                    numbers,
                    buyer_id,
                )
                order = order_store.create_order(db, buyer_id, cards, meta, note=RECONCILIATION_NOTE)

        db.commit()
    except (OperationalError, PoolTimeoutError) as exc:
        db.rollback()
        logger.error("Storage failure while confirming cards %s for %s", numbers, buyer_id, exc_info=True)
        raise TransientStorageError("Card storage is temporarily unavailable, retry the confirmation") from exc
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Purchase of cards %s by %s failed; sale rolled back", numbers, buyer_id)
        raise

    db.refresh(order)
    if already_confirmed:
        logger.info("Purchase of cards %s by %s was already confirmed (order %s)", numbers, buyer_id, order.id)
    else:
        logger.info(
            "Buyer %s bought cards %s (order %s, %s newly sold)",
            buyer_id,
            numbers,
            order.id,
            len(fresh),
        )
    return PurchaseResult(order=order, card_numbers=numbers, already_confirmed=already_confirmed)
