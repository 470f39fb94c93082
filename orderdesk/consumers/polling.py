"""
Order Status Poller

Periodically fetches order snapshots over HTTP and feeds them to an
OrderStateReconciler.

Interval:
    15s while any held order is PAYMENT_CONFIRMED or IN_PREPARATION,
    60s otherwise, multiplied by min(retry_count + 1, 3) after failures
    (retry_count is capped at 5 and resets on success).

Every request is cache-busted with a `_=<epoch ms>` query parameter and
no-cache headers. Polling pauses while the view is hidden; becoming visible
again forces a full refresh.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Any, Callable, Optional

import httpx

from orderdesk.consumers.reconciler import OrderStateReconciler

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-cache, no-store, must-revalidate",
    "Pragma": "no-cache",
}


def extract_orders(payload: Any) -> list[dict]:
    """Snapshots from any of the order endpoints' response shapes."""
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, dict):
        return []
    if isinstance(payload.get("orders"), list):
        return payload["orders"]
    if isinstance(payload.get("data"), list):
        return payload["data"]
    if isinstance(payload.get("order"), dict):
        return [payload["order"]]
    return []


class OrderStatusPoller:
    """
    Adaptive-interval HTTP poller.

    Args:
        client: httpx.AsyncClient (base_url and auth already configured)
        path: Endpoint to poll, e.g. "/api/admin/orders"
        reconciler: Store to feed
        params: Fixed query parameters (e.g. {"slug": "burger-house"})
        incremental: Send `since` with the start time of the last successful poll
    """

    ACTIVE_INTERVAL = 15.0
    IDLE_INTERVAL = 60.0
    MAX_BACKOFF_MULTIPLIER = 3
    MAX_RETRIES = 5

    def __init__(
        self,
        client: httpx.AsyncClient,
        path: str,
        reconciler: OrderStateReconciler,
        params: Optional[dict[str, Any]] = None,
        incremental: bool = False,
        extract: Callable[[Any], list[dict]] = extract_orders,
    ):
        self.client = client
        self.path = path
        self.reconciler = reconciler
        self.params = dict(params or {})
        self.incremental = incremental
        self.extract = extract

        self.retry_count = 0
        self.visible = True
        self.last_success: Optional[datetime] = None
        self._force_refresh = True
        self._wake = asyncio.Event()
        self._stopped = asyncio.Event()

    # =========================================================================
    # SCHEDULING
    # =========================================================================

    def interval(self) -> float:
        base = self.ACTIVE_INTERVAL if self.reconciler.has_active_orders() else self.IDLE_INTERVAL
        return base * min(self.retry_count + 1, self.MAX_BACKOFF_MULTIPLIER)

    def set_visible(self, visible: bool) -> None:
        """Pause while hidden; a hidden -> visible change forces a refresh."""
        if visible and not self.visible:
            self._force_refresh = True
        self.visible = visible
        self._wake.set()

    def stop(self) -> None:
        self._stopped.set()
        self._wake.set()

    # =========================================================================
    # POLLING
    # =========================================================================

    async def poll_once(self, force: bool = False) -> bool:
        """
        Fetch once and reconcile.

        Args:
            force: Replace the store instead of merging, and skip `since`

        Returns:
            True on success
        """
        started = datetime.now(timezone.utc)
        params = dict(self.params)
        if self.incremental and not force and self.last_success is not None:
            params["since"] = self.last_success.isoformat()
        params["_"] = int(time.time() * 1000)

        try:
            response = await self.client.get(self.path, params=params, headers=NO_CACHE_HEADERS)
            response.raise_for_status()
            snapshots = self.extract(response.json())
        except (httpx.HTTPError, ValueError) as e:
            self.retry_count = min(self.retry_count + 1, self.MAX_RETRIES)
            logger.warning(f"Poll of {self.path} failed (retry {self.retry_count}): {e}")
            return False

        if force:
            self.reconciler.replace(snapshots)
        else:
            changed = self.reconciler.merge(snapshots)
            if changed:
                logger.debug(f"Poll of {self.path} updated orders {changed}")

        self.retry_count = 0
        self.last_success = started
        return True

    async def _sleep(self, seconds: float) -> None:
        self._wake.clear()
        try:
            await asyncio.wait_for(self._wake.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def run(self) -> None:
        """Poll until stop() is called."""
        logger.info(f"Polling {self.path} started")
        while not self._stopped.is_set():
            if not self.visible:
                await self._sleep(self.IDLE_INTERVAL)
                continue

            force, self._force_refresh = self._force_refresh, False
            await self.poll_once(force=force)
            await self._sleep(self.interval())
        logger.info(f"Polling {self.path} stopped")
