"""Order status state machine: payment and staff transitions."""

import pytest

from orderdesk.exceptions import AuthorizationError, InvalidTransitionError, NotFoundError
from orderdesk.models import OrderStatus
from orderdesk.schemas import OrderCreate
from orderdesk.services.orders import PAYMENT_TRANSITIONS, STAFF_TRANSITIONS

from helpers import claims_for, order_payload, sign_payload, stripe_event


@pytest.fixture
async def pending_order(order_service, seeded):
    return await order_service.create_order(OrderCreate.model_validate(order_payload(seeded)))


@pytest.fixture
async def confirmed_order(order_service, pending_order):
    order, changed = await order_service.transition(
        pending_order.id, OrderStatus.PAYMENT_CONFIRMED, PAYMENT_TRANSITIONS
    )
    assert changed
    return order


@pytest.fixture
def staff_claims(seeded):
    return claims_for(seeded["staff"], seeded["restaurant"])


@pytest.mark.unit
class TestPaymentTransitions:
    async def test_pending_to_confirmed(self, order_service, pending_order) -> None:
        order, changed = await order_service.transition(
            pending_order.id, OrderStatus.PAYMENT_CONFIRMED, PAYMENT_TRANSITIONS
        )
        assert changed
        assert order.status == OrderStatus.PAYMENT_CONFIRMED
        assert order.updated_at >= order.created_at

    async def test_repeat_is_a_no_op(self, order_service, confirmed_order, realtime) -> None:
        published = len(realtime.published)

        order, changed = await order_service.transition(
            confirmed_order.id, OrderStatus.PAYMENT_CONFIRMED, PAYMENT_TRANSITIONS
        )

        assert not changed
        assert order.status == OrderStatus.PAYMENT_CONFIRMED
        assert len(realtime.published) == published

    async def test_payment_cannot_touch_later_statuses(self, order_service, confirmed_order) -> None:
        with pytest.raises(InvalidTransitionError) as exc_info:
            await order_service.transition(
                confirmed_order.id, OrderStatus.PAYMENT_FAILED, PAYMENT_TRANSITIONS
            )
        assert exc_info.value.current == "PAYMENT_CONFIRMED"
        assert exc_info.value.requested == "PAYMENT_FAILED"

    async def test_unknown_order(self, order_service, seeded) -> None:
        with pytest.raises(NotFoundError):
            await order_service.transition(999, OrderStatus.PAYMENT_CONFIRMED, PAYMENT_TRANSITIONS)


@pytest.mark.unit
class TestStaffTransitions:
    async def test_forward_path(self, order_service, confirmed_order, staff_claims) -> None:
        order, changed = await order_service.update_status(
            confirmed_order.id, OrderStatus.IN_PREPARATION, staff_claims
        )
        assert changed and order.status == OrderStatus.IN_PREPARATION

        order, changed = await order_service.update_status(
            confirmed_order.id, OrderStatus.FINISHED, staff_claims
        )
        assert changed and order.status == OrderStatus.FINISHED

    async def test_cannot_skip_preparation(self, order_service, confirmed_order, staff_claims) -> None:
        with pytest.raises(InvalidTransitionError):
            await order_service.update_status(confirmed_order.id, OrderStatus.FINISHED, staff_claims)

        order = await order_service.get_order(confirmed_order.id)
        assert order.status == OrderStatus.PAYMENT_CONFIRMED

    async def test_no_backwards_moves(self, order_service, confirmed_order, staff_claims) -> None:
        await order_service.update_status(confirmed_order.id, OrderStatus.IN_PREPARATION, staff_claims)
        await order_service.update_status(confirmed_order.id, OrderStatus.FINISHED, staff_claims)

        with pytest.raises(InvalidTransitionError):
            await order_service.update_status(confirmed_order.id, OrderStatus.IN_PREPARATION, staff_claims)

        order = await order_service.get_order(confirmed_order.id)
        assert order.status == OrderStatus.FINISHED

    async def test_unpaid_order_cannot_be_prepared(self, order_service, pending_order, staff_claims) -> None:
        with pytest.raises(InvalidTransitionError):
            await order_service.update_status(pending_order.id, OrderStatus.IN_PREPARATION, staff_claims)

    @pytest.mark.parametrize("target", [OrderStatus.PENDING, OrderStatus.PAYMENT_FAILED])
    async def test_staff_cannot_set_payment_statuses(
        self, order_service, confirmed_order, staff_claims, target
    ) -> None:
        assert target not in STAFF_TRANSITIONS

        with pytest.raises(InvalidTransitionError):
            await order_service.update_status(confirmed_order.id, target, staff_claims)

    async def test_other_restaurant_staff_is_refused(self, order_service, confirmed_order, seeded) -> None:
        outsider = claims_for(seeded["other_admin"], seeded["other_restaurant"])

        with pytest.raises(AuthorizationError):
            await order_service.update_status(confirmed_order.id, OrderStatus.IN_PREPARATION, outsider)

    async def test_status_change_is_broadcast(self, order_service, confirmed_order, staff_claims, realtime) -> None:
        await order_service.update_status(confirmed_order.id, OrderStatus.IN_PREPARATION, staff_claims)

        statuses = [data["status"] for _, data in realtime.events_for(f"order-{confirmed_order.id}")]
        assert statuses == ["PAYMENT_CONFIRMED", "IN_PREPARATION"]


@pytest.mark.integration
class TestStatusUpdateEndpoint:
    async def _confirmed(self, client, seeded) -> int:
        order = (await client.post("/api/orders", json=order_payload(seeded))).json()
        payload = stripe_event("checkout.session.completed", order["id"])
        await client.post(
            "/api/webhooks/stripe", content=payload, headers={"Stripe-Signature": sign_payload(payload)}
        )
        return order["id"]

    async def test_update(self, client, seeded, staff_headers) -> None:
        order_id = await self._confirmed(client, seeded)

        response = await client.post(
            "/api/admin/orders/update",
            json={"orderId": order_id, "status": "IN_PREPARATION"},
            headers=staff_headers,
        )

        assert response.status_code == 200
        body = response.json()
        assert body["changed"] is True
        assert body["order"]["status"] == "IN_PREPARATION"

    async def test_backwards_is_400(self, client, seeded, staff_headers) -> None:
        order_id = await self._confirmed(client, seeded)
        for status in ("IN_PREPARATION", "FINISHED"):
            await client.post(
                "/api/admin/orders/update", json={"orderId": order_id, "status": status}, headers=staff_headers
            )

        response = await client.post(
            "/api/admin/orders/update",
            json={"orderId": order_id, "status": "IN_PREPARATION"},
            headers=staff_headers,
        )

        assert response.status_code == 400
        assert response.json()["success"] is False

    async def test_finishing_an_unprepared_order_is_400(self, client, seeded, staff_headers) -> None:
        order_id = await self._confirmed(client, seeded)

        response = await client.post(
            "/api/admin/orders/update", json={"orderId": order_id, "status": "FINISHED"}, headers=staff_headers
        )

        assert response.status_code == 400
        assert "PAYMENT_CONFIRMED" in response.json()["error"]

    async def test_requires_session(self, client, seeded) -> None:
        response = await client.post("/api/admin/orders/update", json={"orderId": 1, "status": "FINISHED"})
        assert response.status_code == 401

    async def test_unknown_status_value(self, client, seeded, staff_headers) -> None:
        response = await client.post(
            "/api/admin/orders/update", json={"orderId": 1, "status": "DELIVERED"}, headers=staff_headers
        )
        assert response.status_code == 400
