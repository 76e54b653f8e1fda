from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.orm import Session

from app.api.serializers import card_to_response
from app.config import settings
from app.models import get_db
from app.schemas.cards import (
    CardPageResponse,
    MyCardsResponse,
    PurchaseRequest,
    PurchaseResponse,
    ReleaseRequest,
    ReleaseResponse,
    ReserveRequest,
    ReserveResponse,
)
from app.services import card_listing, clock, notifications, purchases, reservations
from app.services.order_store import OrderMeta

router = APIRouter()

SEARCH_PATTERN = r"^\d{1,9}$"


@router.get(
    "",
    response_model=CardPageResponse,
    summary="List available cards",
)
def list_cards(
    db: Annotated[Session, Depends(get_db)],
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(alias="pageSize", ge=1)] = 20,
    search: Annotated[str | None, Query(pattern=SEARCH_PATTERN)] = None,
    buyer_id: Annotated[str | None, Query(alias="buyerId", max_length=64)] = None,
):
    """
    Paginated gallery of cards that can still be picked, ordered by card number.
    Sold cards are excluded; cards reserved by `buyerId` are included.
    """
    page_size = min(page_size, settings.MAX_PAGE_SIZE)
    now = clock.utcnow()
    result = card_listing.list_available(
        db,
        page=page,
        page_size=page_size,
        search=search,
        buyer_id=buyer_id.strip() if buyer_id else None,
        now=now,
    )
    return CardPageResponse(
        data=[card_to_response(card, now) for card in result.cards],
        count=result.total,
        page=page,
        page_size=page_size,
        total_pages=result.total_pages,
        has_more=result.has_more,
    )


@router.get(
    "/mine",
    response_model=MyCardsResponse,
    summary="Cards held or bought by a buyer",
)
def my_cards(
    db: Annotated[Session, Depends(get_db)],
    buyer_id: Annotated[str, Query(alias="buyerId", min_length=1, max_length=64)],
):
    """Returns the buyer's live reservations and purchased cards."""
    now = clock.utcnow()
    buyer_id = buyer_id.strip()
    return MyCardsResponse(
        reserved=[card_to_response(card, now) for card in card_listing.list_reserved_by(db, buyer_id, now)],
        purchased=[card_to_response(card, now) for card in card_listing.list_sold_to(db, buyer_id)],
    )


@router.post(
    "/reserve",
    response_model=ReserveResponse,
    summary="Reserve cards for checkout",
)
def reserve_cards(
    body: ReserveRequest,
    db: Annotated[Session, Depends(get_db)],
):
    """
    Hold all requested cards for the buyer, or none of them.
    Responds 409 with `conflictingCardNumbers` when some cards are sold or held by someone else.
    """
    result = reservations.reserve(db, body.card_ids, body.buyer_id, ttl_minutes=body.ttl_minutes)
    return ReserveResponse(card_numbers=result.card_numbers, reserved_until=result.reserved_until)


@router.post(
    "/purchase",
    response_model=PurchaseResponse,
    summary="Confirm purchase of reserved cards",
)
def purchase_cards(
    body: PurchaseRequest,
    background_tasks: BackgroundTasks,
    db: Annotated[Session, Depends(get_db)],
):
    """
    Convert the buyer's reservation into a sale and create a pending purchase order.
    Repeating a successful confirmation returns the same order.
    """
    meta = OrderMeta(
        buyer_name=body.order_meta.buyer_name,
        buyer_phone=body.order_meta.buyer_phone,
        payment_method=body.order_meta.payment_method,
        transaction_id=body.order_meta.transaction_id,
        reference_number=body.order_meta.reference_number,
        sender_phone=body.order_meta.sender_phone,
        sender_name=body.order_meta.sender_name,
    )
    result = purchases.confirm_purchase(db, body.card_ids, body.buyer_id, meta)
    order = result.order

    if not result.already_confirmed:
        background_tasks.add_task(
            notifications.notify,
            notifications.ORDER_RECEIVED,
            [order.buyer_phone],
            {"order_id": order.id, "card_numbers": order.card_numbers, "total_amount": str(order.total_amount)},
        )

    return PurchaseResponse(
        order_id=order.id,
        card_numbers=result.card_numbers,
        total_amount=order.total_amount,
        already_confirmed=result.already_confirmed,
    )


@router.post(
    "/release",
    response_model=ReleaseResponse,
    summary="Release a buyer's reservations",
)
def release_cards(
    body: ReleaseRequest,
    db: Annotated[Session, Depends(get_db)],
):
    """Returns every card reserved by the buyer to the pool. Releasing nothing is not an error."""
    released = reservations.release(db, body.buyer_id)
    return ReleaseResponse(released=released)
