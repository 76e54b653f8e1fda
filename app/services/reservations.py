"""
Reservation engine.

reserve() holds a set of cards for one buyer, all or nothing. The availability
check and the write are the same conditional UPDATE (card_store.RESERVE); if it
changes fewer rows than were requested the transaction is rolled back, so no
card of a failed request stays reserved. The follow-up read only explains the
failure to the caller, it never decides a state change.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Iterable

from sqlalchemy import func
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from app.config import settings
from app.models import CardInventory
from app.models.card_state import CardReserved, CardSold
from app.services import clock
from app.services.card_store import RELEASE, RESERVE, TransitionContext, apply_transition, get_cards
from app.services.errors import (
    CardsUnavailableError,
    InvalidReservationRequestError,
    ReservationLimitError,
    TransientStorageError,
)
from app.services.expiry_sweeper import sweep_expired_reservations

logger = logging.getLogger(__name__)

BUYER_ID_MAX_LENGTH = 64


@dataclass(frozen=True)
class ReservationResult:
    buyer_id: str
    card_numbers: list[int]
    reserved_until: datetime


def normalize_card_numbers(card_numbers: Iterable[int]) -> list[int]:
    numbers = sorted(set(card_numbers))
    if not numbers:
        raise InvalidReservationRequestError("At least one card number is required")
    invalid = [n for n in numbers if n <= 0]
    if invalid:
        raise InvalidReservationRequestError(
            "Card numbers must be positive: " + ", ".join(str(n) for n in invalid)
        )
    limit = settings.MAX_CARDS_PER_BUYER
    if len(numbers) > limit:
        raise ReservationLimitError(limit, len(numbers))
    return numbers


def normalize_buyer_id(buyer_id: str) -> str:
    cleaned = (buyer_id or "").strip()
    if not cleaned:
        raise InvalidReservationRequestError("Buyer ID is required")
    if len(cleaned) > BUYER_ID_MAX_LENGTH:
        raise InvalidReservationRequestError(f"Buyer ID must be at most {BUYER_ID_MAX_LENGTH} characters")
    return cleaned


def _conflicting_card_numbers(db: Session, numbers: list[int], buyer_id: str, now: datetime) -> list[int]:
    cards = {card.card_number: card for card in get_cards(db, numbers, refresh=True)}
    conflicting = []
    for number in numbers:
        card = cards.get(number)
        if card is None:
            conflicting.append(number)
            continue
        state = card.state
        if isinstance(state, CardSold):
            conflicting.append(number)
        elif isinstance(state, CardReserved) and state.by != buyer_id and not state.is_expired(now):
            conflicting.append(number)
    return conflicting


def _count_live_reservations(db: Session, buyer_id: str, now: datetime) -> int:
    return (
        db.query(func.count(CardInventory.card_number))
        .filter(
            CardInventory.sold_to.is_(None),
            CardInventory.reserved_by == buyer_id,
            CardInventory.reserved_until > now,
        )
        .scalar()
    )


def reserve(
    db: Session,
    card_numbers: Iterable[int],
    buyer_id: str,
    ttl_minutes: int | None = None,
    now: datetime | None = None,
) -> ReservationResult:
    """Reserve every requested card for buyer_id or none of them.

    Re-reserving cards the buyer already holds refreshes their expiry.
    Raises CardsUnavailableError naming the cards that are sold, held by
    another buyer, or unknown.
    """
    numbers = normalize_card_numbers(card_numbers)
    buyer_id = normalize_buyer_id(buyer_id)
    ttl = settings.RESERVATION_TTL_MINUTES if ttl_minutes is None else ttl_minutes
    if ttl <= 0 or ttl > settings.MAX_RESERVATION_TTL_MINUTES:
        raise InvalidReservationRequestError(
            f"ttlMinutes must be between 1 and {settings.MAX_RESERVATION_TTL_MINUTES}"
        )

    now = now or clock.utcnow()
    reserved_until = now + timedelta(minutes=ttl)
    ctx = TransitionContext(now=now, buyer_id=buyer_id, reserved_until=reserved_until)

    try:
        sweep_expired_reservations(db, now)
        changed = apply_transition(db, numbers, RESERVE, ctx)
        if changed != len(numbers):
            db.rollback()
            conflicting = _conflicting_card_numbers(db, numbers, buyer_id, now)
            db.rollback()
            # The blocking holder may have released between the UPDATE and this read.
            conflicting = conflicting or numbers
            logger.info(
                "Reservation for buyer %s rejected, unavailable cards: %s",
                buyer_id,
                conflicting,
            )
            raise CardsUnavailableError(conflicting)

        held = _count_live_reservations(db, buyer_id, now)
        limit = settings.MAX_CARDS_PER_BUYER
        if held > limit:
            db.rollback()
            logger.info("Reservation for buyer %s rejected, would hold %s cards (limit %s)", buyer_id, held, limit)
            raise ReservationLimitError(limit, held)

        db.commit()
    except (OperationalError, PoolTimeoutError) as exc:
        db.rollback()
        logger.error("Storage failure while reserving cards %s for %s", numbers, buyer_id, exc_info=True)
        raise TransientStorageError("Card storage is temporarily unavailable, retry the reservation") from exc

    logger.info("Buyer %s reserved cards %s until %s", buyer_id, numbers, reserved_until.isoformat())
    return ReservationResult(buyer_id=buyer_id, card_numbers=numbers, reserved_until=reserved_until)


def release(db: Session, buyer_id: str, now: datetime | None = None) -> int:
    """Return every card reserved by buyer_id to the available pool. No-op if nothing is held."""
    buyer_id = normalize_buyer_id(buyer_id)
    ctx = TransitionContext(now=now or clock.utcnow(), buyer_id=buyer_id)
    try:
        released = apply_transition(db, None, RELEASE, ctx)
        db.commit()
    except (OperationalError, PoolTimeoutError) as exc:
        db.rollback()
        logger.error("Storage failure while releasing reservations of %s", buyer_id, exc_info=True)
        raise TransientStorageError("Card storage is temporarily unavailable, retry the release") from exc

    if released:
        logger.info("Released %s card(s) reserved by %s", released, buyer_id)
    return released
