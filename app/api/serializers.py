from datetime import datetime

from app.models import CardInventory
from app.models.card_state import AVAILABLE, CardReserved, CardSold, effective_status
from app.schemas.cards import AdminCardResponse, CardResponse


def card_to_response(card: CardInventory, now: datetime) -> CardResponse:
    state = card.state
    status = effective_status(state, now)
    held = isinstance(state, CardReserved) and status != AVAILABLE
    return CardResponse(
        card_number=card.card_number,
        numbers=list(card.numbers or []),
        image_url=card.image_url,
        price=card.price,
        status=status,
        is_available=status == AVAILABLE,
        reserved_by=state.by if held else None,
        reserved_until=state.until if held else None,
    )


def card_to_admin_response(card: CardInventory, now: datetime) -> AdminCardResponse:
    state = card.state
    sold = isinstance(state, CardSold)
    return AdminCardResponse(
        **card_to_response(card, now).model_dump(),
        image_filename=card.image_filename,
        sold_to=state.by if sold else None,
        sold_at=state.at if sold else None,
    )
