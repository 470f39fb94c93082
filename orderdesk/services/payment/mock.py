"""
Mock Payment Service Implementation

Simulates Stripe hosted checkout without making API calls.
Used in development mode (ENV_MODE=development) and by the test suite to:
    - Exercise the complete order -> checkout -> webhook flow locally
    - Run load simulations without incurring costs

Behavior:
    - Simulates response times (configurable, default 50-200ms)
    - Generates Stripe-like session ids (cs_mock_xxx)
    - Keeps every created session so callers can inspect line items
    - Webhooks are verified exactly like the Stripe implementation
"""

import asyncio
import logging
import random
import uuid
from typing import Optional

from orderdesk.exceptions import ExternalServiceError
from orderdesk.services.payment.base import (
    BasePaymentService,
    CheckoutLineItem,
    CheckoutSessionResult,
)

logger = logging.getLogger(__name__)


class MockPaymentService(BasePaymentService):
    """
    Mock implementation of the payment service.

    Attributes:
        failure_rate: Probability of a simulated provider error (0.0-1.0)
        min_latency: Minimum simulated response time in seconds
        max_latency: Maximum simulated response time in seconds
        sessions: Created sessions keyed by id, with their line items

    Example:
        >>> service = MockPaymentService(webhook_secret="whsec_test")
        >>> result = await service.create_checkout_session([...], {"orderId": "1"}, url, url)
        >>> result.session_id.startswith("cs_mock_")
        True
    """

    def __init__(
        self,
        webhook_secret: Optional[str] = None,
        currency: str = "brl",
        failure_rate: float = 0.0,
        min_latency: float = 0.05,
        max_latency: float = 0.2,
    ):
        super().__init__(webhook_secret=webhook_secret, currency=currency)
        self.failure_rate = failure_rate
        self.min_latency = min_latency
        self.max_latency = max_latency
        self.sessions: dict[str, dict] = {}

        logger.info(
            f"MockPaymentService initialized "
            f"(failure_rate={failure_rate:.0%}, "
            f"latency={min_latency}-{max_latency}s)"
        )

    @property
    def provider_name(self) -> str:
        return "mock"

    def _generate_session_id(self) -> str:
        """Generate a Stripe-like checkout session ID."""
        return f"cs_mock_{uuid.uuid4().hex[:24]}"

    async def _simulate_latency(self) -> None:
        if self.max_latency > 0:
            await asyncio.sleep(random.uniform(self.min_latency, self.max_latency))

    async def create_checkout_session(
        self,
        line_items: list[CheckoutLineItem],
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSessionResult:
        await self._simulate_latency()

        if random.random() < self.failure_rate:
            logger.debug("Mock: simulated provider failure")
            raise ExternalServiceError("Payment provider unavailable", provider=self.provider_name)

        session_id = self._generate_session_id()
        self.sessions[session_id] = {
            "line_items": [item.to_stripe(self.currency) for item in line_items],
            "metadata": dict(metadata),
            "payment_intent_data": {"metadata": dict(metadata)},
            "success_url": success_url,
            "cancel_url": cancel_url,
        }

        total = sum(item.unit_amount * item.quantity for item in line_items)
        logger.info(f"Mock: Checkout session {session_id} created - {total / 100:.2f} {self.currency.upper()}")

        return CheckoutSessionResult(
            session_id=session_id,
            url=f"https://checkout.mock/{session_id}",
            metadata=dict(metadata),
        )

    async def health_check(self) -> bool:
        """Mock health check always returns True."""
        return True
