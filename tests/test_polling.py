"""Adaptive polling consumer, driven by an httpx mock transport."""

import asyncio

import httpx
import pytest

from orderdesk.consumers.polling import OrderStatusPoller, extract_orders
from orderdesk.consumers.reconciler import OrderStateReconciler


def snapshot(order_id: int, status: str, updated_at: str) -> dict:
    return {"id": order_id, "status": status, "createdAt": "2024-05-01T12:00:00Z", "updatedAt": updated_at}


class FakeBackend:
    """Serves queued responses and records every request."""

    def __init__(self):
        self.responses: list = []
        self.requests: list[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler), base_url="http://api.test")


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
async def poller(backend):
    async with backend.client() as client:
        yield OrderStatusPoller(
            client, "/api/admin/orders", OrderStateReconciler(), params={"slug": "burger-house"}, incremental=True
        )


@pytest.mark.unit
class TestExtractOrders:
    def test_shapes(self) -> None:
        assert extract_orders({"orders": [{"id": 1}]}) == [{"id": 1}]
        assert extract_orders({"data": [{"id": 2}]}) == [{"id": 2}]
        assert extract_orders({"order": {"id": 3}}) == [{"id": 3}]
        assert extract_orders({"order": None}) == []
        assert extract_orders([{"id": 4}]) == [{"id": 4}]
        assert extract_orders("nope") == []


@pytest.mark.unit
class TestOrderStatusPoller:
    def test_interval_depends_on_activity(self, poller) -> None:
        assert poller.interval() == 60

        poller.reconciler.apply(snapshot(1, "IN_PREPARATION", "2024-05-01T12:01:00Z"))
        assert poller.interval() == 15

        poller.reconciler.apply(snapshot(1, "FINISHED", "2024-05-01T12:02:00Z"))
        assert poller.interval() == 60

    def test_backoff_multiplier_is_capped(self, poller) -> None:
        poller.retry_count = 1
        assert poller.interval() == 120
        poller.retry_count = 5
        assert poller.interval() == 180

    async def test_success_merges_and_cache_busts(self, poller, backend) -> None:
        backend.responses.append(
            httpx.Response(200, json={"success": True, "orders": [snapshot(1, "PENDING", "2024-05-01T12:00:00Z")]})
        )

        assert await poller.poll_once()

        request = backend.requests[0]
        assert request.url.params["slug"] == "burger-house"
        assert request.url.params["_"].isdigit()
        assert "since" not in request.url.params
        assert request.headers["cache-control"] == "no-cache, no-store, must-revalidate"
        assert poller.reconciler.get(1)["status"] == "PENDING"
        assert poller.last_success is not None

    async def test_incremental_poll_sends_since(self, poller, backend) -> None:
        backend.responses += [httpx.Response(200, json={"orders": []}), httpx.Response(200, json={"orders": []})]

        await poller.poll_once()
        first_success = poller.last_success
        await poller.poll_once()

        assert backend.requests[1].url.params["since"] == first_success.isoformat()

    async def test_failures_back_off_and_success_resets(self, poller, backend) -> None:
        backend.responses += [httpx.Response(500) for _ in range(7)]
        backend.responses.append(httpx.Response(200, json={"orders": []}))

        for expected in [1, 2, 3, 4, 5, 5, 5]:
            assert not await poller.poll_once()
            assert poller.retry_count == expected

        assert poller.interval() == 180
        assert await poller.poll_once()
        assert poller.retry_count == 0
        assert poller.interval() == 60

    async def test_transport_error_counts_as_failure(self, poller, backend) -> None:
        backend.responses.append(httpx.ConnectError("refused"))

        assert not await poller.poll_once()
        assert poller.retry_count == 1

    async def test_forced_refresh_replaces_store(self, poller, backend) -> None:
        poller.reconciler.apply(snapshot(1, "PENDING", "2024-05-01T12:00:00Z"))
        backend.responses.append(
            httpx.Response(200, json={"orders": [snapshot(2, "PENDING", "2024-05-01T12:00:00Z")]})
        )

        await poller.poll_once(force=True)

        assert 1 not in poller.reconciler
        assert 2 in poller.reconciler
        assert "since" not in backend.requests[0].url.params

    def test_becoming_visible_forces_refresh(self, poller) -> None:
        poller._force_refresh = False

        poller.set_visible(False)
        assert not poller._force_refresh

        poller.set_visible(True)
        assert poller._force_refresh

    async def test_run_stops(self, poller, backend) -> None:
        backend.responses.append(httpx.Response(200, json={"orders": []}))
        poller.IDLE_INTERVAL = 5

        task = asyncio.create_task(poller.run())
        while not backend.requests:
            await asyncio.sleep(0)
        poller.stop()
        await asyncio.wait_for(task, timeout=1)

        assert task.done()
