"""Read-side queries over the card inventory: the buyer gallery, "My Cards", and admin views."""

import logging
import math
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import String, and_, cast, or_
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Query, Session

from app.models import CardInventory
from app.services import clock
from app.services.errors import TransientStorageError
from app.services.expiry_sweeper import run_sweep

logger = logging.getLogger(__name__)

INVENTORY_STATUSES = ("all", "available", "reserved", "sold")


@dataclass(frozen=True)
class CardPage:
    cards: list[CardInventory]
    total: int
    page: int
    page_size: int

    @property
    def has_more(self) -> bool:
        return self.total > self.page * self.page_size

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.page_size) if self.page_size else 0


@dataclass(frozen=True)
class InventoryStats:
    total: int
    available: int
    reserved: int
    sold: int


def _live_reservation(now: datetime):
    return and_(
        CardInventory.sold_to.is_(None),
        CardInventory.reserved_by.is_not(None),
        CardInventory.reserved_until > now,
    )


def _apply_search(query: Query, search: str | None) -> Query:
    if search:
        query = query.filter(cast(CardInventory.card_number, String).like(f"%{search}%"))
    return query


def _paginate(query: Query, page: int, page_size: int) -> CardPage:
    total = query.count()
    cards = (
        query.order_by(CardInventory.card_number.asc())
        .offset((page - 1) * page_size)
        .limit(page_size)
        .all()
    )
    return CardPage(cards=cards, total=total, page=page, page_size=page_size)


def list_available(
    db: Session,
    page: int = 1,
    page_size: int = 20,
    search: str | None = None,
    buyer_id: str | None = None,
    now: datetime | None = None,
) -> CardPage:
    """Cards a buyer can pick: unsold, and either free or held by buyer_id.

    Expired reservations are swept first. If the sweep fails the listing still
    answers, treating lapsed reservations as free.
    """
    now = now or clock.utcnow()
    try:
        run_sweep(db, now)
    except SQLAlchemyError as exc:
        logger.warning("Could not release expired reservations before listing: %s", exc)

    visible = [
        CardInventory.reserved_by.is_(None),
        CardInventory.reserved_until <= now,
    ]
    if buyer_id:
        visible.append(CardInventory.reserved_by == buyer_id)

    query = db.query(CardInventory).filter(CardInventory.sold_to.is_(None), or_(*visible))
    query = _apply_search(query, search)
    try:
        return _paginate(query, page, page_size)
    except (OperationalError, PoolTimeoutError) as exc:
        db.rollback()
        logger.error("Storage failure while listing available cards", exc_info=True)
        raise TransientStorageError("Card storage is temporarily unavailable, retry the listing") from exc


def list_inventory(
    db: Session,
    page: int = 1,
    page_size: int = 20,
    search: str | None = None,
    status: str = "all",
    now: datetime | None = None,
) -> CardPage:
    """Admin listing of every card, optionally narrowed to one effective status."""
    if status not in INVENTORY_STATUSES:
        raise ValueError(f"Unsupported inventory status: {status}")
    now = now or clock.utcnow()

    query = db.query(CardInventory)
    if status == "available":
        query = query.filter(
            CardInventory.sold_to.is_(None),
            or_(CardInventory.reserved_by.is_(None), CardInventory.reserved_until <= now),
        )
    elif status == "reserved":
        query = query.filter(_live_reservation(now))
    elif status == "sold":
        query = query.filter(CardInventory.sold_to.is_not(None))
    query = _apply_search(query, search)
    return _paginate(query, page, page_size)


def inventory_stats(db: Session, now: datetime | None = None) -> InventoryStats:
    now = now or clock.utcnow()
    total = db.query(CardInventory).count()
    sold = db.query(CardInventory).filter(CardInventory.sold_to.is_not(None)).count()
    reserved = db.query(CardInventory).filter(_live_reservation(now)).count()
    return InventoryStats(total=total, available=total - sold - reserved, reserved=reserved, sold=sold)


def list_reserved_by(db: Session, buyer_id: str, now: datetime | None = None) -> list[CardInventory]:
    now = now or clock.utcnow()
    return (
        db.query(CardInventory)
        .filter(_live_reservation(now), CardInventory.reserved_by == buyer_id)
        .order_by(CardInventory.card_number.asc())
        .all()
    )


def list_sold_to(db: Session, buyer_id: str) -> list[CardInventory]:
    return (
        db.query(CardInventory)
        .filter(CardInventory.sold_to == buyer_id)
        .order_by(CardInventory.sold_at.desc(), CardInventory.card_number.asc())
        .all()
    )
