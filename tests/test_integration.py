from fastapi import status

from app.models.card import CardInventory
from app.models.purchase_order import PurchaseOrder


def test_full_purchase_flow(client, db, cards, clock, admin_headers):
    """Test complete flow: browse -> reserve -> purchase -> admin verifies payment."""
    # 1. Browse available cards
    list_response = client.get("/api/cards", params={"pageSize": 50})
    assert list_response.status_code == status.HTTP_200_OK
    assert list_response.json()["count"] == 12

    # 2. Reserve three cards
    reserve_response = client.post(
        "/api/cards/reserve",
        json={"cardIds": [1, 2, 3], "buyerId": "V-12345678", "ttlMinutes": 10},
    )
    assert reserve_response.status_code == status.HTTP_200_OK

    # 3. Another buyer no longer sees them
    other_view = client.get("/api/cards", params={"pageSize": 50}).json()
    assert {1, 2, 3}.isdisjoint(c["cardNumber"] for c in other_view["data"])

    # 4. Confirm purchase before the reservation runs out
    clock.advance(minutes=8)
    purchase_response = client.post(
        "/api/cards/purchase",
        json={
            "cardIds": [1, 2, 3],
            "buyerId": "V-12345678",
            "orderMeta": {
                "buyerName": "Ana Pérez",
                "buyerPhone": "+58 412 1234567",
                "paymentMethod": "pago_movil",
                "referenceNumber": "000123",
                "senderPhone": "+58 414 7654321",
                "senderName": "Luis Pérez",
            },
        },
    )
    assert purchase_response.status_code == status.HTTP_200_OK
    order_id = purchase_response.json()["orderId"]

    order = db.query(PurchaseOrder).filter(PurchaseOrder.id == order_id).first()
    assert order is not None
    assert order.status == "pending"
    assert order.card_numbers == [1, 2, 3]
    assert order.sender_name == "Luis Pérez"

    # 5. Cards are sold and stay sold long after any reservation would have expired
    clock.advance(days=1)
    sold = db.query(CardInventory).filter(CardInventory.sold_to == "V-12345678").count()
    assert sold == 3
    retry = client.post("/api/cards/reserve", json={"cardIds": [2], "buyerId": "someone-else"})
    assert retry.status_code == status.HTTP_409_CONFLICT
    assert retry.json()["conflictingCardNumbers"] == [2]

    # 6. Admin verifies the payment
    review_response = client.patch(
        f"/api/admin/orders/{order_id}",
        json={"status": "verified"},
        headers=admin_headers,
    )
    assert review_response.status_code == status.HTTP_200_OK

    # 7. Buyer sees the verified order and the purchased cards
    orders = client.get("/api/orders", params={"buyerId": "V-12345678"}).json()
    assert [o["status"] for o in orders] == ["verified"]
    mine = client.get("/api/cards/mine", params={"buyerId": "V-12345678"}).json()
    assert [c["cardNumber"] for c in mine["purchased"]] == [1, 2, 3]


def test_abandoned_checkout_returns_cards(client, cards, clock):
    """A buyer who never confirms loses the cards to the next buyer after the TTL."""
    client.post("/api/cards/reserve", json={"cardIds": [42, 99], "buyerId": "A", "ttlMinutes": 5})

    blocked = client.post("/api/cards/reserve", json={"cardIds": [99], "buyerId": "B"})
    assert blocked.status_code == status.HTTP_409_CONFLICT

    clock.advance(minutes=6)
    listing = client.get("/api/cards", params={"search": "99"}).json()
    assert [c["cardNumber"] for c in listing["data"]] == [99]
    assert listing["data"][0]["status"] == "available"

    taken = client.post("/api/cards/reserve", json={"cardIds": [99], "buyerId": "B"})
    assert taken.status_code == status.HTTP_200_OK

    late = client.post(
        "/api/cards/purchase",
        json={
            "cardIds": [42, 99],
            "buyerId": "A",
            "orderMeta": {"buyerName": "A", "buyerPhone": "+58 412 0000000", "paymentMethod": "zelle"},
        },
    )
    assert late.status_code == status.HTTP_409_CONFLICT
    assert late.json()["cardNumbers"] == [42, 99]
