from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID

import pytest

from conftest import BUYER, OTHER_USER, SELLER, SHIPPING_ADDRESS
from heed_orders.models.order import Order
from heed_orders.services.notification_bridge import outbox

pytestmark = pytest.mark.usefixtures("parties")

SELLER_PATH = ["confirmed", "shipping_initiated", "shipped", "out_for_delivery"]


def _create_order(client, auth_headers, product, **overrides):
    payload = {
        "post_id": str(product.id),
        "quantity": 1,
        "payment_method": "cod",
        "shipping_address": SHIPPING_ADDRESS,
    }
    payload.update(overrides)
    return client.post("/api/v1/orders", json=payload, headers=auth_headers(BUYER))


def _move(client, auth_headers, order_id, status, **extra):
    body = {"status": status, **extra}
    if status == "shipped":
        body.setdefault("tracking_number", "TRK-77")
    return client.patch(
        f"/api/v1/orders/{order_id}/status", json=body, headers=auth_headers(SELLER)
    )


def test_create_get_and_list(client, auth_headers, make_product):
    product = make_product(price="450", quantity=3)

    response = _create_order(client, auth_headers, product, quantity=2)

    assert response.status_code == 201
    created = response.json()
    UUID(created["id"])
    assert created["status"] == "pending"
    assert Decimal(created["total_amount"]) == Decimal("900")
    assert [entry["status"] for entry in created["status_history"]] == ["pending"]

    fetched = client.get(f"/api/v1/orders/{created['id']}", headers=auth_headers(SELLER))
    assert fetched.status_code == 200
    assert fetched.json()["order_number"] == created["order_number"]

    buyer_list = client.get("/api/v1/orders/buyer", headers=auth_headers(BUYER)).json()
    seller_list = client.get("/api/v1/orders/seller", headers=auth_headers(SELLER)).json()
    assert [item["id"] for item in buyer_list["items"]] == [created["id"]]
    assert seller_list["total"] == 1


def test_requests_without_token_are_unauthorized(client):
    assert client.get("/api/v1/orders/buyer").status_code == 401


def test_validation_failures_are_400(client, auth_headers, make_product):
    product = make_product()

    response = _create_order(client, auth_headers, product, quantity=0)

    assert response.status_code == 400
    assert response.json()["kind"] == "Validation"


def test_stock_failures_are_409(client, auth_headers, make_product):
    product = make_product(quantity=1)

    response = _create_order(client, auth_headers, product, quantity=2)

    assert response.status_code == 409
    assert response.json()["kind"] == "InsufficientStock"


def test_strangers_get_403_and_unknown_orders_404(client, auth_headers, make_product):
    order_id = _create_order(client, auth_headers, make_product()).json()["id"]

    stranger = client.get(f"/api/v1/orders/{order_id}", headers=auth_headers(OTHER_USER))
    missing = client.get(
        "/api/v1/orders/00000000-0000-0000-0000-000000000000", headers=auth_headers(BUYER)
    )

    assert stranger.status_code == 403
    assert stranger.json()["kind"] == "Authorization"
    assert missing.status_code == 404


def test_buyer_cancel_then_second_cancel_conflicts(client, auth_headers, make_product):
    order_id = _create_order(client, auth_headers, make_product()).json()["id"]

    first = client.post(
        f"/api/v1/orders/{order_id}/cancel",
        json={"reason": "Changed my mind"},
        headers=auth_headers(BUYER),
    )
    second = client.post(f"/api/v1/orders/{order_id}/cancel", json={}, headers=auth_headers(BUYER))

    assert first.status_code == 200
    assert first.json()["status"] == "cancelled"
    assert first.json()["cancellation_reason"] == "Changed my mind"
    assert second.status_code == 409
    assert second.json() == {
        "kind": "InvalidTransition",
        "message": "Cannot transition from cancelled to cancelled",
        "current_status": "cancelled",
        "target_status": "cancelled",
    }


def test_stale_expected_version_conflicts(client, auth_headers, make_product):
    created = _create_order(client, auth_headers, make_product()).json()

    response = _move(
        client, auth_headers, created["id"], "confirmed", expected_version=created["version"] + 5
    )

    assert response.status_code == 409
    assert response.json()["kind"] == "Conflict"


def test_seller_flow_through_buyer_confirmation(client, auth_headers, make_product):
    order_id = _create_order(client, auth_headers, make_product()).json()["id"]

    missing_tracking = client.patch(
        f"/api/v1/orders/{order_id}/status",
        json={"status": "shipped"},
        headers=auth_headers(SELLER),
    )
    assert missing_tracking.status_code == 400

    for status in SELLER_PATH:
        response = _move(client, auth_headers, order_id, status)
        assert response.status_code == 200, response.json()

    confirmed = client.post(
        f"/api/v1/orders/{order_id}/confirm-delivery",
        json={"confirmed": True},
        headers=auth_headers(BUYER),
    )

    assert confirmed.status_code == 200
    body = confirmed.json()
    assert body["status"] == "delivered"
    assert body["payment_status"] == "completed"
    assert body["tracking_number"] == "TRK-77"
    assert [entry["status"] for entry in body["status_history"]] == [
        "pending",
        *SELLER_PATH,
        "delivered",
    ]
    assert any(message.payload.get("delivery_confirmed") for message in outbox.all_messages())


def test_seller_cannot_request_buyer_only_states(client, auth_headers, make_product):
    order_id = _create_order(client, auth_headers, make_product()).json()["id"]

    response = _move(client, auth_headers, order_id, "disputed")

    assert response.status_code == 403


def test_refund_and_dispute_after_delivery(client, auth_headers, make_product):
    first = _create_order(client, auth_headers, make_product()).json()["id"]
    second = _create_order(client, auth_headers, make_product(title="Wool Scarf")).json()["id"]
    for order_id in (first, second):
        for status in [*SELLER_PATH, "delivered"]:
            assert _move(client, auth_headers, order_id, status).status_code == 200

    refund = client.post(
        f"/api/v1/orders/{first}/refund",
        json={"reason": "Torn seam"},
        headers=auth_headers(BUYER),
    )
    dispute = client.post(
        f"/api/v1/orders/{second}/dispute",
        json={"reason": "Wrong colour"},
        headers=auth_headers(BUYER),
    )

    assert refund.status_code == 200
    assert refund.json()["status"] == "refund_requested"
    assert refund.json()["refund_reason"] == "Torn seam"
    assert dispute.status_code == 200
    assert dispute.json()["status"] == "disputed"
    assert dispute.json()["disputed_at"] is not None


def test_online_payment_is_recorded(client, auth_headers, make_product):
    order_id = _create_order(
        client, auth_headers, make_product(), payment_method="online"
    ).json()["id"]

    response = client.post(
        f"/api/v1/orders/{order_id}/payment",
        json={"transaction_id": "pay_123"},
        headers=auth_headers(BUYER),
    )

    assert response.status_code == 200
    assert response.json()["payment_status"] == "completed"
    assert response.json()["transaction_id"] == "pay_123"


def test_seller_notes_and_stats(client, auth_headers, make_product):
    order_id = _create_order(client, auth_headers, make_product()).json()["id"]

    notes = client.patch(
        f"/api/v1/orders/{order_id}/seller-notes",
        json={"notes": "Gift wrap"},
        headers=auth_headers(SELLER),
    )
    stats = client.get("/api/v1/orders/seller/stats", headers=auth_headers(SELLER))

    assert notes.status_code == 200
    assert notes.json()["seller_notes"] == "Gift wrap"
    assert stats.status_code == 200
    assert stats.json()["total_orders"] == 1
    assert stats.json()["pending_actions"] == 1
    assert stats.json()["counts"]["pending"] == 1


def test_auto_confirm_requires_admin_and_delivers_stale_orders(
    client, auth_headers, make_product, db_session
):
    order_id = _create_order(client, auth_headers, make_product()).json()["id"]
    for status in SELLER_PATH:
        assert _move(client, auth_headers, order_id, status).status_code == 200

    order = db_session.get(Order, UUID(order_id))
    order.updated_at = datetime.now(timezone.utc) - timedelta(hours=49)
    db_session.commit()

    forbidden = client.post("/api/v1/orders/auto-confirm", headers=auth_headers(SELLER))
    swept = client.post("/api/v1/orders/auto-confirm", headers=auth_headers("ops-1", role="ADMIN"))
    again = client.post("/api/v1/orders/auto-confirm", headers=auth_headers("ops-1", role="ADMIN"))

    assert forbidden.status_code == 403
    assert swept.json() == {"confirmed": 1}
    assert again.json() == {"confirmed": 0}
    order_view = client.get(f"/api/v1/orders/{order_id}", headers=auth_headers(BUYER)).json()
    assert order_view["status"] == "delivered"
    assert order_view["status_history"][-1]["updated_by"] == "system"
