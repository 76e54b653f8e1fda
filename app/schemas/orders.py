from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import Field

from app.schemas.base import CamelModel, MoneyModel


class OrderStatus(str, Enum):
    PENDING = "pending"
    VERIFIED = "verified"
    REJECTED = "rejected"


class CartItemResponse(MoneyModel):
    card_number: int = Field(alias="cardNumber")
    numbers: list[int]
    price: Decimal
    image_url: str | None = Field(default=None, alias="imageUrl")


class OrderResponse(MoneyModel):
    id: int
    buyer_id: str = Field(alias="buyerId")
    buyer_name: str = Field(alias="buyerName")
    buyer_phone: str = Field(alias="buyerPhone")
    payment_method: str = Field(alias="paymentMethod")
    transaction_id: str | None = Field(default=None, alias="transactionId")
    reference_number: str | None = Field(default=None, alias="referenceNumber")
    card_numbers: list[int] = Field(alias="cardNumbers")
    cart_items: list[CartItemResponse] = Field(alias="cartItems")
    total_amount: Decimal = Field(alias="totalAmount")
    status: OrderStatus
    notes: str | None = None
    verified_by: str | None = Field(default=None, alias="verifiedBy")
    verified_at: datetime | None = Field(default=None, alias="verifiedAt")
    created_at: datetime | None = Field(default=None, alias="createdAt")

    model_config = {"from_attributes": True, "populate_by_name": True}


class OrderStatusUpdateRequest(CamelModel):
    status: OrderStatus

    model_config = {
        "json_schema_extra": {"examples": [{"status": "verified"}]},
    }
