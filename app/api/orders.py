from typing import Annotated

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.models import get_db
from app.schemas.orders import OrderResponse
from app.services import order_store

router = APIRouter()


@router.get(
    "",
    response_model=list[OrderResponse],
    summary="List a buyer's orders",
)
def buyer_orders(
    db: Annotated[Session, Depends(get_db)],
    buyer_id: Annotated[str, Query(alias="buyerId", min_length=1, max_length=64)],
):
    """Returns the buyer's purchase orders, newest first."""
    orders = order_store.list_orders(db, buyer_id=buyer_id.strip())
    return [OrderResponse.model_validate(o) for o in orders]
