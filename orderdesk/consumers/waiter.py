"""
Order-detail waiter.

Right after checkout the customer lands on the order page before (or
while) the payment webhook is processed. The page retries the order lookup
a fixed number of times with a fixed delay, then gives up with
NotFoundError instead of waiting forever.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

import httpx

from orderdesk.consumers.polling import NO_CACHE_HEADERS
from orderdesk.exceptions import NotFoundError

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_ATTEMPTS = 5
DEFAULT_DELAY_SECONDS = 1.0


async def wait_for_order(
    fetch: Callable[[], Awaitable[Optional[T]]],
    attempts: int = DEFAULT_ATTEMPTS,
    delay: float = DEFAULT_DELAY_SECONDS,
) -> T:
    """
    Call fetch until it returns something, at most `attempts` times.

    Args:
        fetch: Lookup returning the order or None
        attempts: Total tries
        delay: Seconds between tries

    Raises:
        NotFoundError: Every attempt came back empty
    """
    for attempt in range(1, attempts + 1):
        order = await fetch()
        if order is not None:
            return order
        if attempt < attempts:
            logger.debug(f"Order not available yet (attempt {attempt}/{attempts})")
            await asyncio.sleep(delay)

    raise NotFoundError(f"Order not found after {attempts} attempts")


def order_snapshot_fetcher(client: httpx.AsyncClient, order_id: int) -> Callable[[], Awaitable[Optional[dict]]]:
    """
    Fetch callable for GET /api/orders/status?id=<order_id>.

    404 and transport errors count as "not yet"; other HTTP errors raise.
    """

    async def fetch() -> Optional[dict]:
        try:
            response = await client.get(
                "/api/orders/status", params={"id": order_id}, headers=NO_CACHE_HEADERS
            )
        except httpx.TransportError as e:
            logger.warning(f"Order #{order_id} lookup failed: {e}")
            return None
        if response.status_code == 404:
            return None
        response.raise_for_status()
        return response.json().get("order")

    return fetch
