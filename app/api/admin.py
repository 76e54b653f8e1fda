import logging
from typing import Annotated

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from app.api.serializers import card_to_admin_response
from app.config import settings
from app.dependencies import AdminPrincipal, get_current_admin
from app.models import get_db
from app.schemas.cards import (
    AdminCardPageResponse,
    AdminCardResponse,
    CardCreateRequest,
    InventoryStatsResponse,
)
from app.schemas.orders import OrderResponse, OrderStatus, OrderStatusUpdateRequest
from app.services import card_listing, card_store, clock, notifications, order_store

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get(
    "/cards",
    response_model=AdminCardPageResponse,
    summary="List card inventory",
)
def list_inventory(
    admin: Annotated[AdminPrincipal, Depends(get_current_admin)],
    db: Annotated[Session, Depends(get_db)],
    page: Annotated[int, Query(ge=1)] = 1,
    page_size: Annotated[int, Query(alias="pageSize", ge=1)] = 20,
    search: Annotated[str | None, Query(pattern=r"^\d{1,9}$")] = None,
    card_status: Annotated[str, Query(alias="status", pattern="^(all|available|reserved|sold)$")] = "all",
):
    """Every card with holder details, optionally filtered by status (all, available, reserved, sold)."""
    page_size = min(page_size, settings.MAX_PAGE_SIZE)
    now = clock.utcnow()
    result = card_listing.list_inventory(
        db, page=page, page_size=page_size, search=search, status=card_status, now=now
    )
    return AdminCardPageResponse(
        data=[card_to_admin_response(card, now) for card in result.cards],
        count=result.total,
        page=page,
        page_size=page_size,
        total_pages=result.total_pages,
        has_more=result.has_more,
    )


@router.post(
    "/cards",
    response_model=AdminCardResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Add a card to the inventory",
)
def create_card(
    body: CardCreateRequest,
    admin: Annotated[AdminPrincipal, Depends(get_current_admin)],
    db: Annotated[Session, Depends(get_db)],
):
    """Adds a new available card. Responds 409 if the card number already exists."""
    card = card_store.add_card(
        db,
        card_number=body.card_number,
        numbers=body.numbers,
        price=body.price if body.price is not None else settings.DEFAULT_CARD_PRICE,
        image_url=body.image_url,
        image_filename=body.image_filename,
    )
    logger.info("Admin %s added card %s", admin.subject, card.card_number)
    return card_to_admin_response(card, clock.utcnow())


@router.get(
    "/cards/stats",
    response_model=InventoryStatsResponse,
    summary="Inventory counts",
)
def inventory_stats(
    admin: Annotated[AdminPrincipal, Depends(get_current_admin)],
    db: Annotated[Session, Depends(get_db)],
):
    stats = card_listing.inventory_stats(db)
    return InventoryStatsResponse(
        total=stats.total,
        available=stats.available,
        reserved=stats.reserved,
        sold=stats.sold,
    )


@router.get(
    "/orders",
    response_model=list[OrderResponse],
    summary="List purchase orders",
)
def list_orders(
    admin: Annotated[AdminPrincipal, Depends(get_current_admin)],
    db: Annotated[Session, Depends(get_db)],
    order_status: Annotated[OrderStatus | None, Query(alias="status")] = None,
    buyer_id: Annotated[str | None, Query(alias="buyerId", max_length=64)] = None,
):
    orders = order_store.list_orders(
        db,
        buyer_id=buyer_id.strip() if buyer_id else None,
        status=order_status.value if order_status else None,
    )
    return [OrderResponse.model_validate(o) for o in orders]


@router.get(
    "/orders/{order_id}",
    response_model=OrderResponse,
    summary="Get a purchase order",
)
def get_order(
    order_id: int,
    admin: Annotated[AdminPrincipal, Depends(get_current_admin)],
    db: Annotated[Session, Depends(get_db)],
):
    order = order_store.get_order(db, order_id)
    if not order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")
    return OrderResponse.model_validate(order)


@router.patch(
    "/orders/{order_id}",
    response_model=OrderResponse,
    summary="Verify or reject an order",
)
def review_order(
    order_id: int,
    body: OrderStatusUpdateRequest,
    background_tasks: BackgroundTasks,
    admin: Annotated[AdminPrincipal, Depends(get_current_admin)],
    db: Annotated[Session, Depends(get_db)],
):
    """
    Marks an order's payment as verified or rejected and notifies the buyer.
    Cards of a rejected order stay sold.
    """
    if body.status == OrderStatus.PENDING:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Order status can only be changed to verified or rejected",
        )

    order = order_store.update_order_status(
        db, order_id, body.status.value, verified_by=admin.subject, now=clock.utcnow()
    )
    if not order:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found")

    event = (
        notifications.PAYMENT_VERIFIED if body.status == OrderStatus.VERIFIED else notifications.PAYMENT_REJECTED
    )
    background_tasks.add_task(
        notifications.notify,
        event,
        [order.buyer_phone],
        {"order_id": order.id, "card_numbers": order.card_numbers},
    )
    return OrderResponse.model_validate(order)
