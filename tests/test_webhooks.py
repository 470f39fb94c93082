"""Stripe webhook endpoint: signature verification and payment transitions."""

import json
import logging

import pytest
from sqlalchemy.exc import OperationalError

from orderdesk.exceptions import InternalError
from orderdesk.schemas import OrderCreate
from orderdesk.services.webhooks import WebhookService

from helpers import order_payload, sign_payload, stripe_event

WEBHOOK_URL = "/api/webhooks/stripe"


async def create_order(client, seeded) -> dict:
    response = await client.post("/api/orders", json=order_payload(seeded))
    assert response.status_code == 201
    return response.json()


async def send_event(client, payload: str, signature: str = None):
    headers = {"Content-Type": "application/json"}
    headers["Stripe-Signature"] = signature if signature is not None else sign_payload(payload)
    return await client.post(WEBHOOK_URL, content=payload, headers=headers)


async def order_status(client, order_id: int) -> str:
    response = await client.get("/api/orders/status", params={"id": order_id})
    return response.json()["order"]["status"]


@pytest.mark.integration
class TestWebhookSignature:
    async def test_missing_signature(self, client, seeded) -> None:
        order = await create_order(client, seeded)
        payload = stripe_event("checkout.session.completed", order["id"])

        response = await client.post(WEBHOOK_URL, content=payload)

        assert response.status_code == 400
        assert await order_status(client, order["id"]) == "PENDING"

    async def test_wrong_secret(self, client, seeded) -> None:
        order = await create_order(client, seeded)
        payload = stripe_event("checkout.session.completed", order["id"])

        response = await send_event(client, payload, sign_payload(payload, secret="whsec_wrong"))

        assert response.status_code == 400
        assert response.json()["success"] is False
        assert await order_status(client, order["id"]) == "PENDING"

    async def test_tampered_body(self, client, seeded) -> None:
        order = await create_order(client, seeded)
        signed = stripe_event("charge.failed", order["id"])
        tampered = stripe_event("checkout.session.completed", order["id"])

        response = await send_event(client, tampered, sign_payload(signed))

        assert response.status_code == 400
        assert await order_status(client, order["id"]) == "PENDING"

    async def test_stale_timestamp(self, client, seeded) -> None:
        order = await create_order(client, seeded)
        payload = stripe_event("checkout.session.completed", order["id"])

        response = await send_event(client, payload, sign_payload(payload, timestamp=1_000_000))

        assert response.status_code == 400

    async def test_unconfigured_secret(self, client, seeded, payment) -> None:
        payment._webhook_secret = None
        payload = stripe_event("checkout.session.completed", 1)

        response = await send_event(client, payload)

        assert response.status_code == 500


@pytest.mark.integration
class TestWebhookTransitions:
    async def test_session_completed_confirms_payment(self, client, seeded, realtime) -> None:
        order = await create_order(client, seeded)

        response = await send_event(client, stripe_event("checkout.session.completed", order["id"]))

        assert response.status_code == 200
        assert response.json() == {"received": True, "outcome": "applied"}
        assert await order_status(client, order["id"]) == "PAYMENT_CONFIRMED"

        restaurant_events = [e for e, _ in realtime.events_for("restaurant-burger-house")]
        assert restaurant_events == ["new-order", "update-order"]
        [(event, data)] = realtime.events_for(f"order-{order['id']}")
        assert event == "status-update"
        assert data["orderId"] == order["id"]
        assert data["status"] == "PAYMENT_CONFIRMED"
        assert data["timestamp"]

    async def test_duplicate_delivery_is_idempotent(self, client, seeded, realtime) -> None:
        order = await create_order(client, seeded)
        payload = stripe_event("checkout.session.completed", order["id"])

        first = await send_event(client, payload)
        second = await send_event(client, payload)

        assert first.json()["outcome"] == "applied"
        assert second.status_code == 200
        assert second.json()["outcome"] == "duplicate"
        assert await order_status(client, order["id"]) == "PAYMENT_CONFIRMED"
        # One broadcast only
        assert len(realtime.events_for(f"order-{order['id']}")) == 1

    async def test_charge_failed(self, client, seeded) -> None:
        order = await create_order(client, seeded)

        response = await send_event(client, stripe_event("charge.failed", order["id"]))

        assert response.json()["outcome"] == "applied"
        assert await order_status(client, order["id"]) == "PAYMENT_FAILED"

    async def test_charge_failed_after_confirmation_is_ignored(self, client, seeded) -> None:
        order = await create_order(client, seeded)
        await send_event(client, stripe_event("checkout.session.completed", order["id"], "evt_1"))

        response = await send_event(client, stripe_event("charge.failed", order["id"], "evt_2"))

        assert response.status_code == 200
        assert response.json()["outcome"] == "rejected"
        assert await order_status(client, order["id"]) == "PAYMENT_CONFIRMED"

    async def test_failed_payment_is_terminal(self, client, seeded) -> None:
        order = await create_order(client, seeded)
        await send_event(client, stripe_event("charge.failed", order["id"], "evt_1"))

        response = await send_event(client, stripe_event("checkout.session.completed", order["id"], "evt_2"))

        assert response.json()["outcome"] == "rejected"
        assert await order_status(client, order["id"]) == "PAYMENT_FAILED"

    async def test_unknown_order_is_acknowledged(self, client, seeded) -> None:
        response = await send_event(client, stripe_event("checkout.session.completed", 4242))

        assert response.status_code == 200
        assert response.json()["outcome"] == "order_not_found"

    async def test_missing_metadata_is_acknowledged(self, client, seeded) -> None:
        payload = (
            '{"id": "evt_x", "type": "checkout.session.completed", '
            '"data": {"object": {"id": "cs_x", "metadata": {}}}}'
        )

        response = await send_event(client, payload)

        assert response.status_code == 200
        assert response.json()["outcome"] == "order_not_found"

    async def test_unhandled_event_type(self, client, seeded) -> None:
        order = await create_order(client, seeded)

        response = await send_event(client, stripe_event("customer.created", order["id"]))

        assert response.json()["outcome"] == "unhandled"
        assert await order_status(client, order["id"]) == "PENDING"


@pytest.mark.integration
class TestWebhookFailures:
    @pytest.mark.parametrize(
        "error",
        [
            OperationalError("UPDATE orders", {}, Exception("database is locked")),
            InternalError("Could not update order"),
        ],
    )
    async def test_write_failure_is_logged_and_raised(
        self, order_service, seeded, caplog, monkeypatch, error
    ) -> None:
        order = await order_service.create_order(OrderCreate.model_validate(order_payload(seeded)))

        async def failing_transition(*args, **kwargs):
            raise error

        monkeypatch.setattr(order_service, "transition", failing_transition)
        event = json.loads(stripe_event("checkout.session.completed", order.id))

        with caplog.at_level(logging.ERROR, logger="orderdesk.services.webhooks"):
            with pytest.raises(type(error)):
                await WebhookService(order_service).handle_event(event)

        assert f"order #{order.id}" in caplog.text
        assert "checkout.session.completed" in caplog.text
