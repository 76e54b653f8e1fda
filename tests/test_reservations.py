from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app.models.card_state import CardAvailable, CardReserved
from app.services import card_listing, reservations
from app.services.card_store import get_cards
from app.services.errors import (
    CardsUnavailableError,
    InvalidReservationRequestError,
    ReservationLimitError,
    TransientStorageError,
)
from conftest import NOW


def _states(db, numbers):
    return {c.card_number: c.state for c in get_cards(db, numbers, refresh=True)}


def test_reserved_card_blocks_other_buyer(db, cards):
    """Buyer A holds card 42, so buyer B is told exactly which card is taken."""
    result = reservations.reserve(db, [42], "A", ttl_minutes=5, now=NOW)
    assert result.card_numbers == [42]
    assert result.reserved_until == NOW + timedelta(minutes=5)

    with pytest.raises(CardsUnavailableError) as exc_info:
        reservations.reserve(db, [42], "B", ttl_minutes=5, now=NOW + timedelta(seconds=1))
    assert exc_info.value.card_numbers == [42]
    assert _states(db, [42])[42].by == "A"


def test_expired_reservation_does_not_block(db, cards):
    reservations.reserve(db, [42], "A", ttl_minutes=5, now=NOW)

    later = NOW + timedelta(minutes=6)
    result = reservations.reserve(db, [42], "B", ttl_minutes=5, now=later)

    assert result.buyer_id == "B"
    assert _states(db, [42])[42] == CardReserved(by="B", until=later + timedelta(minutes=5))


def test_reservation_is_free_exactly_at_expiry(db, cards):
    reservations.reserve(db, [42], "A", ttl_minutes=5, now=NOW)
    reservations.reserve(db, [42], "B", ttl_minutes=5, now=NOW + timedelta(minutes=5))
    assert _states(db, [42])[42].by == "B"


def test_released_cards_can_be_reserved_by_another_buyer(db, cards):
    reservations.reserve(db, [1, 2], "A", now=NOW)

    assert reservations.release(db, "A", now=NOW) == 2

    result = reservations.reserve(db, [1, 2], "B", now=NOW)
    assert result.card_numbers == [1, 2]
    assert all(state.by == "B" for state in _states(db, [1, 2]).values())


def test_lazy_sweep_on_listing_frees_expired_card(db, cards):
    """After the TTL passes, listing reclaims the card and another buyer can take it."""
    reservations.reserve(db, [5], "A", ttl_minutes=5, now=NOW)

    later = NOW + timedelta(minutes=6)
    page = card_listing.list_available(db, page=1, page_size=50, now=later)
    assert 5 in [c.card_number for c in page.cards]
    assert _states(db, [5])[5] == CardAvailable()

    reservations.reserve(db, [5], "B", now=later)
    assert _states(db, [5])[5].by == "B"


def test_rereserving_refreshes_expiry(db, cards):
    reservations.reserve(db, [3], "A", ttl_minutes=5, now=NOW)
    second = reservations.reserve(db, [3], "A", ttl_minutes=5, now=NOW + timedelta(minutes=4))

    assert second.reserved_until == NOW + timedelta(minutes=9)
    assert _states(db, [3])[3].until == NOW + timedelta(minutes=9)


def test_failed_multi_card_request_reserves_nothing(db, cards):
    reservations.reserve(db, [2], "B", now=NOW)

    with pytest.raises(CardsUnavailableError) as exc_info:
        reservations.reserve(db, [1, 2, 3], "A", now=NOW)

    assert exc_info.value.card_numbers == [2]
    states = _states(db, [1, 2, 3])
    assert states[1] == CardAvailable()
    assert states[2].by == "B"
    assert states[3] == CardAvailable()


def test_failed_request_keeps_buyers_existing_reservation(db, cards):
    reservations.reserve(db, [1], "A", ttl_minutes=5, now=NOW)
    reservations.reserve(db, [2], "B", now=NOW)

    with pytest.raises(CardsUnavailableError):
        reservations.reserve(db, [1, 2], "A", ttl_minutes=30, now=NOW + timedelta(minutes=1))

    assert _states(db, [1])[1] == CardReserved(by="A", until=NOW + timedelta(minutes=5))


def test_unknown_card_is_reported_unavailable(db, cards):
    with pytest.raises(CardsUnavailableError) as exc_info:
        reservations.reserve(db, [1, 5000], "A", now=NOW)

    assert exc_info.value.card_numbers == [5000]
    assert _states(db, [1])[1] == CardAvailable()


def test_duplicate_card_numbers_are_collapsed(db, cards):
    result = reservations.reserve(db, [9, 3, 9], "A", now=NOW)
    assert result.card_numbers == [3, 9]


def test_release_without_reservations_is_noop(db, cards):
    assert reservations.release(db, "nobody", now=NOW) == 0


def test_release_leaves_other_buyers_alone(db, cards):
    reservations.reserve(db, [1], "A", now=NOW)
    reservations.reserve(db, [2], "B", now=NOW)

    assert reservations.release(db, "A", now=NOW) == 1
    assert _states(db, [2])[2].by == "B"


def test_buyer_limit_counts_existing_reservations(db, cards):
    """The test limit is 10 cards per buyer."""
    reservations.reserve(db, list(range(1, 9)), "A", now=NOW)

    with pytest.raises(ReservationLimitError) as exc_info:
        reservations.reserve(db, [9, 10, 42], "A", now=NOW)

    assert exc_info.value.limit == 10
    assert exc_info.value.held == 11
    states = _states(db, [9, 10, 42])
    assert all(state == CardAvailable() for state in states.values())


def test_buyer_limit_ignores_expired_reservations(db, cards):
    reservations.reserve(db, list(range(1, 9)), "A", ttl_minutes=5, now=NOW)

    result = reservations.reserve(db, [9, 10, 42], "A", now=NOW + timedelta(minutes=10))
    assert result.card_numbers == [9, 10, 42]


@pytest.mark.parametrize(
    "card_numbers, buyer_id, ttl_minutes",
    [
        ([], "A", 5),
        ([0], "A", 5),
        ([-3, 4], "A", 5),
        ([1], "   ", 5),
        ([1], "x" * 65, 5),
        ([1], "A", 0),
        ([1], "A", 61),
    ],
)
def test_invalid_requests_are_rejected(db, cards, card_numbers, buyer_id, ttl_minutes):
    with pytest.raises(InvalidReservationRequestError):
        reservations.reserve(db, card_numbers, buyer_id, ttl_minutes=ttl_minutes, now=NOW)


def test_buyer_id_is_trimmed(db, cards):
    result = reservations.reserve(db, [6], "  A  ", now=NOW)
    assert result.buyer_id == "A"
    assert _states(db, [6])[6].by == "A"


def test_default_ttl_comes_from_settings(db, cards):
    result = reservations.reserve(db, [6], "A", now=NOW)
    assert result.reserved_until == NOW + timedelta(minutes=5)


def test_storage_failure_is_transient(db, cards, monkeypatch):
    def locked(*args, **kwargs):
        raise OperationalError("UPDATE card_inventory", {}, Exception("could not obtain lock"))

    monkeypatch.setattr(reservations, "apply_transition", locked)

    with pytest.raises(TransientStorageError) as exc_info:
        reservations.reserve(db, [1], "A", now=NOW)
    assert exc_info.value.to_payload()["retryable"] is True

    with pytest.raises(TransientStorageError):
        reservations.release(db, "A", now=NOW)


def test_oversized_request_is_rejected_before_touching_storage(db, cards, monkeypatch):
    def must_not_run(*args, **kwargs):
        raise AssertionError("storage was queried")

    monkeypatch.setattr(reservations, "apply_transition", must_not_run)

    with pytest.raises(ReservationLimitError) as exc_info:
        reservations.reserve(db, range(1, 5001), "A", now=NOW)
    assert exc_info.value.limit == 10
    assert exc_info.value.held == 5000
