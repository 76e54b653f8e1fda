"""
Card store: durable card rows and their lifecycle transitions.

Every change to reserved_by/reserved_until/sold_to/sold_at goes through
apply_transition(), which issues a single conditional UPDATE. The predicate is
evaluated by the database against the row as it is at write time, so two
requests racing for the same card cannot both match it.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Callable, Iterable

from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.sql.elements import ColumnElement

from app.models import CardInventory
from app.services.errors import CardAlreadyExistsError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransitionContext:
    now: datetime
    buyer_id: str | None = None
    reserved_until: datetime | None = None


@dataclass(frozen=True)
class Transition:
    name: str
    predicate: Callable[[TransitionContext], ColumnElement]
    values: Callable[[TransitionContext], dict]


def _reservation_lapsed(now: datetime) -> ColumnElement:
    return or_(CardInventory.reserved_until.is_(None), CardInventory.reserved_until <= now)


SWEEP_EXPIRED = Transition(
    name="sweep_expired",
    predicate=lambda ctx: and_(
        CardInventory.sold_to.is_(None),
        CardInventory.reserved_by.is_not(None),
        _reservation_lapsed(ctx.now),
    ),
    values=lambda ctx: {
        "is_available": True,
        "reserved_by": None,
        "reserved_until": None,
    },
)

RESERVE = Transition(
    name="reserve",
    predicate=lambda ctx: and_(
        CardInventory.sold_to.is_(None),
        or_(
            CardInventory.reserved_by.is_(None),
            CardInventory.reserved_by == ctx.buyer_id,
            _reservation_lapsed(ctx.now),
        ),
    ),
    values=lambda ctx: {
        "is_available": False,
        "reserved_by": ctx.buyer_id,
        "reserved_until": ctx.reserved_until,
    },
)

RELEASE = Transition(
    name="release",
    predicate=lambda ctx: and_(
        CardInventory.sold_to.is_(None),
        CardInventory.reserved_by == ctx.buyer_id,
    ),
    values=lambda ctx: {
        "is_available": True,
        "reserved_by": None,
        "reserved_until": None,
    },
)

SELL = Transition(
    name="sell",
    predicate=lambda ctx: and_(
        CardInventory.sold_to.is_(None),
        CardInventory.reserved_by == ctx.buyer_id,
        CardInventory.reserved_until > ctx.now,
    ),
    values=lambda ctx: {
        "is_available": False,
        "reserved_by": None,
        "reserved_until": None,
        "sold_to": ctx.buyer_id,
        "sold_at": ctx.now,
    },
)


def apply_transition(
    db: Session,
    card_numbers: Iterable[int] | None,
    transition: Transition,
    ctx: TransitionContext,
) -> int:
    """Run one conditional UPDATE for the transition and return the number of rows changed.

    card_numbers=None applies the transition to every card matching the predicate.
    Does not commit; the caller owns the transaction.
    """
    query = db.query(CardInventory).filter(transition.predicate(ctx))
    if card_numbers is not None:
        query = query.filter(CardInventory.card_number.in_(list(card_numbers)))
    changed = query.update(transition.values(ctx), synchronize_session=False)
    logger.debug("Transition %s changed %s card(s)", transition.name, changed)
    return changed


def get_cards(
    db: Session,
    card_numbers: Iterable[int],
    *,
    refresh: bool = False,
    lock: bool = False,
) -> list[CardInventory]:
    """Current rows for the given numbers, ordered by number. Unknown numbers are simply absent.

    lock=True reads with SELECT ... FOR UPDATE, holding the rows until the caller's transaction ends.
    """
    numbers = list(card_numbers)
    if not numbers:
        return []
    query = db.query(CardInventory).filter(CardInventory.card_number.in_(numbers))
    if refresh:
        # Rows may already sit in the identity map from before a bulk UPDATE.
        query = query.populate_existing()
    if lock:
        query = query.with_for_update()
    return query.order_by(CardInventory.card_number).all()


def add_card(
    db: Session,
    card_number: int,
    numbers: list[int],
    price: Decimal,
    image_url: str | None = None,
    image_filename: str | None = None,
) -> CardInventory:
    if db.query(CardInventory.card_number).filter(CardInventory.card_number == card_number).first():
        raise CardAlreadyExistsError(card_number)

    card = CardInventory(
        card_number=card_number,
        numbers=list(numbers),
        price=price,
        image_url=image_url,
        image_filename=image_filename,
        is_available=True,
    )
    db.add(card)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise CardAlreadyExistsError(card_number) from exc
    db.refresh(card)
    logger.info("Card %s added to inventory", card_number)
    return card
