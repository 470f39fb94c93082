"""Application wiring: health, error envelopes and the admin order feed."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import update

from orderdesk.main import create_app
from orderdesk.models import Order, OrderStatus

from helpers import order_payload


@pytest.mark.integration
class TestHealth:
    async def test_operational(self, client) -> None:
        response = await client.get("/health")

        assert response.status_code == 200
        body = response.json()
        assert body["status"] == "operational"
        assert body["database"] == "healthy"
        assert body["realtime"] == "healthy"
        assert body["payment_service"] == "healthy"

    async def test_degraded_when_relay_is_down(self, client, realtime, monkeypatch) -> None:
        async def unhealthy() -> bool:
            return False

        monkeypatch.setattr(realtime, "health_check", unhealthy)

        body = (await client.get("/health")).json()
        assert body["status"] == "degraded"
        assert body["realtime"] == "unhealthy"


@pytest.mark.integration
class TestErrorEnvelope:
    async def test_body_validation(self, client, seeded) -> None:
        response = await client.post("/api/orders", json={"slug": "burger-house"})

        assert response.status_code == 400
        body = response.json()
        assert body["success"] is False
        assert body["error"]
        assert "customerName" in body["detail"]

    async def test_query_validation(self, client, seeded) -> None:
        response = await client.get("/api/orders/status", params={"id": "abc"})
        assert response.status_code == 400

    async def test_not_found(self, client, seeded) -> None:
        response = await client.get("/api/orders/status", params={"id": 999})
        assert response.status_code == 404
        assert response.json()["success"] is False


@pytest.mark.integration
class TestAdminOrderFeed:
    async def test_lists_orders_with_counts(self, client, seeded, database, admin_headers) -> None:
        first = (await client.post("/api/orders", json=order_payload(seeded))).json()
        await client.post("/api/orders", json=order_payload(seeded))
        async with database.session() as s:
            await s.execute(
                update(Order).where(Order.id == first["id"]).values(status=OrderStatus.PAYMENT_CONFIRMED)
            )
            await s.commit()

        response = await client.get("/api/admin/orders", headers=admin_headers)

        assert response.status_code == 200
        assert response.headers["cache-control"] == "no-cache, no-store, must-revalidate"
        body = response.json()
        assert body["success"] is True
        assert len(body["orders"]) == 2
        assert body["orders"][0]["id"] > body["orders"][1]["id"]
        assert body["metadata"]["total"] == 2
        assert body["metadata"]["pending"] == 1
        assert body["metadata"]["confirmed"] == 1
        assert body["since"] is None

    async def test_since_filters_old_orders(self, client, seeded, admin_headers) -> None:
        await client.post("/api/orders", json=order_payload(seeded))
        future = (datetime.now(timezone.utc) + timedelta(minutes=5)).isoformat()

        body = (await client.get("/api/admin/orders", params={"since": future}, headers=admin_headers)).json()

        assert body["orders"] == []
        assert body["metadata"]["total"] == 1

    async def test_since_includes_recent_updates(self, client, seeded, admin_headers) -> None:
        past = (datetime.now(timezone.utc) - timedelta(minutes=5)).isoformat()
        await client.post("/api/orders", json=order_payload(seeded))

        body = (await client.get("/api/admin/orders", params={"since": past}, headers=admin_headers)).json()

        assert len(body["orders"]) == 1

    async def test_single_order(self, client, seeded, admin_headers, other_admin_headers) -> None:
        created = (await client.post("/api/orders", json=order_payload(seeded))).json()

        response = await client.get(f"/api/admin/orders/{created['id']}", headers=admin_headers)
        assert response.json()["customerName"] == "Maria Silva"

        response = await client.get(f"/api/admin/orders/{created['id']}", headers=other_admin_headers)
        assert response.status_code == 403


@pytest.mark.unit
class TestAppFactory:
    def test_importing_builds_no_app(self) -> None:
        import orderdesk.main as main_module

        assert not hasattr(main_module, "app")

    async def test_injected_collaborators_are_used(
        self, settings, database, payment, realtime, cache
    ) -> None:
        app = create_app(
            settings=settings,
            database=database,
            payment_service=payment,
            realtime=realtime,
            cache=cache,
        )

        assert app.state.settings is settings
        assert app.state.database is database
        assert app.state.payment_service is payment
        assert app.state.realtime is realtime
        assert app.state.cache is cache
        assert app.state.fanout.realtime is realtime
