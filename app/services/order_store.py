"""Purchase order records. Orders never change card state; that belongs to card_store."""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from sqlalchemy.orm import Session

from app.models import CardInventory, PurchaseOrder

logger = logging.getLogger(__name__)

REVIEW_STATUSES = ("verified", "rejected")


@dataclass(frozen=True)
class OrderMeta:
    buyer_name: str
    buyer_phone: str
    payment_method: str
    transaction_id: str | None = None
    reference_number: str | None = None
    sender_phone: str | None = None
    sender_name: str | None = None


def create_order(
    db: Session,
    buyer_id: str,
    cards: list[CardInventory],
    meta: OrderMeta,
    note: str | None = None,
) -> PurchaseOrder:
    """Add a pending order for the given cards to the session. The caller commits."""
    cart_items = [
        {
            "card_number": card.card_number,
            "numbers": list(card.numbers or []),
            "price": str(Decimal(str(card.price))),
            "image_url": card.image_url,
        }
        for card in cards
    ]
    total_amount = sum((Decimal(str(card.price)) for card in cards), Decimal("0"))

    order = PurchaseOrder(
        buyer_id=buyer_id,
        buyer_name=meta.buyer_name,
        buyer_phone=meta.buyer_phone,
        payment_method=meta.payment_method,
        transaction_id=meta.transaction_id,
        reference_number=meta.reference_number,
        sender_phone=meta.sender_phone,
        sender_name=meta.sender_name,
        card_numbers=[card.card_number for card in cards],
        cart_items=cart_items,
        total_amount=total_amount,
        status="pending",
        notes=note,
    )
    db.add(order)
    db.flush()
    return order


def find_order_for_cards(db: Session, buyer_id: str, card_numbers: list[int]) -> PurchaseOrder | None:
    """Most recent order of buyer_id that covers every one of card_numbers."""
    wanted = set(card_numbers)
    orders = (
        db.query(PurchaseOrder)
        .filter(PurchaseOrder.buyer_id == buyer_id)
        .order_by(PurchaseOrder.id.desc())
        .all()
    )
    for order in orders:
        if wanted.issubset(set(order.card_numbers or [])):
            return order
    return None


def list_orders(db: Session, buyer_id: str | None = None, status: str | None = None) -> list[PurchaseOrder]:
    query = db.query(PurchaseOrder)
    if buyer_id is not None:
        query = query.filter(PurchaseOrder.buyer_id == buyer_id)
    if status is not None:
        query = query.filter(PurchaseOrder.status == status)
    return query.order_by(PurchaseOrder.created_at.desc(), PurchaseOrder.id.desc()).all()


def get_order(db: Session, order_id: int) -> PurchaseOrder | None:
    return db.query(PurchaseOrder).filter(PurchaseOrder.id == order_id).first()


def update_order_status(
    db: Session,
    order_id: int,
    status: str,
    verified_by: str,
    now: datetime,
) -> PurchaseOrder | None:
    """Mark an order verified or rejected. Returns None for an unknown order.

    Rejecting an order does not return its cards to inventory; a sold card stays sold.
    """
    if status not in REVIEW_STATUSES:
        raise ValueError(f"Unsupported order status: {status}")

    order = db.query(PurchaseOrder).filter(PurchaseOrder.id == order_id).with_for_update().first()
    if not order:
        return None

    order.status = status
    order.verified_by = verified_by
    order.verified_at = now
    db.commit()
    db.refresh(order)
    logger.info("Order %s marked as %s by %s", order_id, status, verified_by)
    return order
