from app.schemas.cards import (
    CardCreateRequest,
    CardPageResponse,
    CardResponse,
    PurchaseRequest,
    PurchaseResponse,
    ReleaseRequest,
    ReleaseResponse,
    ReserveRequest,
    ReserveResponse,
)
from app.schemas.orders import OrderResponse, OrderStatus, OrderStatusUpdateRequest

__all__ = [
    "CardCreateRequest",
    "CardPageResponse",
    "CardResponse",
    "PurchaseRequest",
    "PurchaseResponse",
    "ReleaseRequest",
    "ReleaseResponse",
    "ReserveRequest",
    "ReserveResponse",
    "OrderResponse",
    "OrderStatus",
    "OrderStatusUpdateRequest",
]
