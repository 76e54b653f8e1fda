from datetime import datetime
from decimal import Decimal

from pydantic import Field, field_validator

from app.schemas.base import CamelModel, MoneyModel


def _validate_card_ids(value: list[int]) -> list[int]:
    if not value:
        raise ValueError("At least one card must be selected")
    if any(n <= 0 for n in value):
        raise ValueError("Card numbers must be positive integers")
    return value


def _validate_buyer_id(value: str) -> str:
    cleaned = value.strip()
    if not cleaned:
        raise ValueError("Buyer ID is required")
    return cleaned


class CardResponse(MoneyModel):
    card_number: int = Field(alias="cardNumber")
    numbers: list[int]
    image_url: str | None = Field(default=None, alias="imageUrl")
    price: Decimal
    status: str
    is_available: bool = Field(alias="isAvailable")
    reserved_by: str | None = Field(default=None, alias="reservedBy")
    reserved_until: datetime | None = Field(default=None, alias="reservedUntil")


class AdminCardResponse(CardResponse):
    image_filename: str | None = Field(default=None, alias="imageFilename")
    sold_to: str | None = Field(default=None, alias="soldTo")
    sold_at: datetime | None = Field(default=None, alias="soldAt")


class CardPageResponse(CamelModel):
    data: list[CardResponse]
    count: int
    page: int
    page_size: int = Field(alias="pageSize")
    total_pages: int = Field(alias="totalPages")
    has_more: bool = Field(alias="hasMore")


class AdminCardPageResponse(CardPageResponse):
    data: list[AdminCardResponse]


class MyCardsResponse(CamelModel):
    reserved: list[CardResponse]
    purchased: list[CardResponse]


class ReserveRequest(CamelModel):
    card_ids: list[int] = Field(alias="cardIds")
    buyer_id: str = Field(alias="buyerId", min_length=1, max_length=64)
    ttl_minutes: int | None = Field(default=None, alias="ttlMinutes", gt=0)

    @field_validator("card_ids")
    @classmethod
    def validate_card_ids(cls, v: list[int]) -> list[int]:
        return _validate_card_ids(v)

    @field_validator("buyer_id")
    @classmethod
    def validate_buyer_id(cls, v: str) -> str:
        return _validate_buyer_id(v)

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "examples": [{"cardIds": [12, 42, 99], "buyerId": "V-12345678", "ttlMinutes": 5}]
        },
    }


class ReserveResponse(CamelModel):
    success: bool = True
    card_numbers: list[int] = Field(alias="cardNumbers")
    reserved_until: datetime = Field(alias="reservedUntil")


class OrderMetaRequest(CamelModel):
    buyer_name: str = Field(alias="buyerName", min_length=1, max_length=255)
    buyer_phone: str = Field(alias="buyerPhone", min_length=1, max_length=64)
    payment_method: str = Field(alias="paymentMethod", min_length=1, max_length=50)
    transaction_id: str | None = Field(default=None, alias="transactionId", max_length=255)
    reference_number: str | None = Field(default=None, alias="referenceNumber", max_length=255)
    sender_phone: str | None = Field(default=None, alias="senderPhone", max_length=64)
    sender_name: str | None = Field(default=None, alias="senderName", max_length=255)


class PurchaseRequest(CamelModel):
    card_ids: list[int] = Field(alias="cardIds")
    buyer_id: str = Field(alias="buyerId", min_length=1, max_length=64)
    order_meta: OrderMetaRequest = Field(alias="orderMeta")

    @field_validator("card_ids")
    @classmethod
    def validate_card_ids(cls, v: list[int]) -> list[int]:
        return _validate_card_ids(v)

    @field_validator("buyer_id")
    @classmethod
    def validate_buyer_id(cls, v: str) -> str:
        return _validate_buyer_id(v)


class PurchaseResponse(MoneyModel):
    success: bool = True
    order_id: int = Field(alias="orderId")
    card_numbers: list[int] = Field(alias="cardNumbers")
    total_amount: Decimal = Field(alias="totalAmount")
    already_confirmed: bool = Field(alias="alreadyConfirmed")


class ReleaseRequest(CamelModel):
    buyer_id: str = Field(alias="buyerId", min_length=1, max_length=64)

    @field_validator("buyer_id")
    @classmethod
    def validate_buyer_id(cls, v: str) -> str:
        return _validate_buyer_id(v)


class ReleaseResponse(CamelModel):
    success: bool = True
    released: int


class CardCreateRequest(CamelModel):
    card_number: int = Field(alias="cardNumber", gt=0)
    numbers: list[int] = Field(min_length=1)
    image_url: str | None = Field(default=None, alias="imageUrl", max_length=1024)
    image_filename: str | None = Field(default=None, alias="imageFilename", max_length=255)
    price: Decimal | None = Field(default=None, ge=0)


class InventoryStatsResponse(CamelModel):
    total: int
    available: int
    reserved: int
    sold: int
