"""
In-memory lifecycle of a card.

Storage keeps the lifecycle as nullable columns (reserved_by/reserved_until,
sold_to/sold_at). Code above the persistence boundary works with exactly one of
the variants below, so "reserved and sold at once" cannot be represented.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional, Union

logger = logging.getLogger(__name__)

AVAILABLE = "available"
RESERVED = "reserved"
SOLD = "sold"


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Return value as an aware UTC datetime. SQLite hands back naive values stored as UTC."""

    if value is None:
        return None
    if value.tzinfo is None or value.utcoffset() is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(frozen=True, slots=True)
class CardAvailable:
    status: str = AVAILABLE


@dataclass(frozen=True, slots=True)
class CardReserved:
    by: str
    until: datetime
    status: str = RESERVED

    def is_expired(self, now: datetime) -> bool:
        return self.until <= now


@dataclass(frozen=True, slots=True)
class CardSold:
    by: str
    at: Optional[datetime]
    status: str = SOLD


CardState = Union[CardAvailable, CardReserved, CardSold]


def card_state(card) -> CardState:
    """Translate a card row's nullable lifecycle columns into a CardState."""

    if card.sold_to is not None:
        if card.reserved_by is not None or card.reserved_until is not None or card.is_available:
            logger.critical(
                "Card %s invariant violation: sold_to=%s but reserved_by=%s reserved_until=%s is_available=%s",
                card.card_number,
                card.sold_to,
                card.reserved_by,
                card.reserved_until,
                card.is_available,
            )
        return CardSold(by=card.sold_to, at=as_utc(card.sold_at))

    if card.reserved_by is not None:
        if card.reserved_until is None:
            logger.critical(
                "Card %s invariant violation: reserved_by=%s without reserved_until",
                card.card_number,
                card.reserved_by,
            )
            return CardAvailable()
        return CardReserved(by=card.reserved_by, until=as_utc(card.reserved_until))

    if not card.is_available:
        logger.critical(
            "Card %s invariant violation: not available but neither reserved nor sold",
            card.card_number,
        )
    return CardAvailable()


def effective_status(state: CardState, now: datetime) -> str:
    """Status as a buyer sees it: a lapsed reservation already counts as available."""

    if isinstance(state, CardReserved) and state.is_expired(now):
        return AVAILABLE
    return state.status
