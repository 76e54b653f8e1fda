"""Errors raised by the card inventory core.

Conflict and expiry errors carry the card numbers involved so a caller can
prompt the buyer to re-select. Transient errors mean the identical request may
be retried.
"""


class CardInventoryError(Exception):
    code = "card_inventory_error"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_payload(self) -> dict:
        return {"error": self.message, "code": self.code}


class InvalidReservationRequestError(CardInventoryError):
    code = "invalid_request"


class CardsUnavailableError(CardInventoryError):
    code = "cards_unavailable"
    status_code = 409

    def __init__(self, card_numbers: list[int]):
        self.card_numbers = sorted(card_numbers)
        super().__init__(
            "Some cards are no longer available: " + ", ".join(str(n) for n in self.card_numbers)
        )

    def to_payload(self) -> dict:
        return {**super().to_payload(), "conflictingCardNumbers": self.card_numbers}


class ReservationLimitError(CardInventoryError):
    code = "reservation_limit_exceeded"

    def __init__(self, limit: int, held: int):
        self.limit = limit
        self.held = held
        super().__init__(f"A buyer may hold at most {limit} cards (requested total: {held})")

    def to_payload(self) -> dict:
        return {**super().to_payload(), "limit": self.limit, "held": self.held}


class ReservationExpiredError(CardInventoryError):
    code = "reservation_expired"
    status_code = 409

    def __init__(self, card_numbers: list[int]):
        self.card_numbers = sorted(card_numbers)
        super().__init__(
            "Reservation expired or missing for cards: "
            + ", ".join(str(n) for n in self.card_numbers)
            + ". Select and reserve them again."
        )

    def to_payload(self) -> dict:
        return {**super().to_payload(), "cardNumbers": self.card_numbers}


class TransientStorageError(CardInventoryError):
    code = "storage_unavailable"
    status_code = 503

    def to_payload(self) -> dict:
        return {**super().to_payload(), "retryable": True}


class CardAlreadyExistsError(CardInventoryError):
    code = "card_exists"
    status_code = 409

    def __init__(self, card_number: int):
        self.card_number = card_number
        super().__init__(f"A card with number {card_number} already exists")
