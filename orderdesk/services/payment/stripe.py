"""
Stripe Payment Service Implementation

Production implementation using the official Stripe Python SDK.
Used when ENV_MODE=production or ENV_MODE=staging.

Requirements:
    - STRIPE_SECRET_KEY for creating checkout sessions
    - STRIPE_WEBHOOK_SECRET for webhook verification

The SDK is synchronous; calls run in a worker thread so the event loop is
never blocked. The API key is passed per request instead of being set on
the stripe module.
"""

import asyncio
import logging
from typing import Optional

import stripe

from orderdesk.exceptions import ExternalServiceError, PaymentConfigurationError
from orderdesk.services.payment.base import (
    BasePaymentService,
    CheckoutLineItem,
    CheckoutSessionResult,
)

logger = logging.getLogger(__name__)


class StripePaymentService(BasePaymentService):
    """
    Production Stripe payment service implementation.

    Example:
        >>> service = StripePaymentService(api_key="sk_test_...", webhook_secret="whsec_...")
        >>> result = await service.create_checkout_session(items, {"orderId": "7"}, url, url)
    """

    def __init__(
        self,
        api_key: Optional[str],
        webhook_secret: Optional[str] = None,
        currency: str = "brl",
    ):
        super().__init__(webhook_secret=webhook_secret, currency=currency)
        self._api_key = api_key

        if not api_key:
            logger.warning("StripePaymentService initialized without STRIPE_SECRET_KEY")
        else:
            logger.info("StripePaymentService initialized")

    @property
    def provider_name(self) -> str:
        return "stripe"

    @property
    def is_configured(self) -> bool:
        return bool(self._api_key)

    async def create_checkout_session(
        self,
        line_items: list[CheckoutLineItem],
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSessionResult:
        if not self._api_key:
            raise PaymentConfigurationError(
                "Stripe secret key is not configured", provider=self.provider_name
            )

        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.create,
                api_key=self._api_key,
                mode="payment",
                payment_method_types=["card"],
                line_items=[item.to_stripe(self.currency) for item in line_items],
                metadata=metadata,
                payment_intent_data={"metadata": metadata},
                success_url=success_url,
                cancel_url=cancel_url,
            )
        except stripe.AuthenticationError as e:
            logger.critical(f"Stripe: Authentication failed - {e}")
            raise PaymentConfigurationError(
                "Payment service configuration error", provider=self.provider_name
            )
        except stripe.StripeError as e:
            logger.error(f"Stripe: Checkout session failed - {e}")
            raise ExternalServiceError(
                "Payment provider error", provider=self.provider_name, detail=str(e)
            )

        logger.info(f"Stripe: Checkout session created - {session.id}")
        return CheckoutSessionResult(
            session_id=session.id,
            url=getattr(session, "url", None),
            metadata=dict(metadata),
        )

    async def health_check(self) -> bool:
        """Verify credentials with a lightweight account lookup."""
        if not self._api_key:
            return False
        try:
            await asyncio.to_thread(stripe.Account.retrieve, api_key=self._api_key)
            return True
        except stripe.StripeError as e:
            logger.error(f"Stripe: Health check failed - {e}")
            return False
