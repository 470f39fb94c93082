"""
Payment Service Abstract Base Class

Defines the interface contract for all payment service implementations.
Both MockPaymentService and StripePaymentService implement these methods,
so checkout and webhook handling behave the same regardless of which
service is active.

Webhook verification is shared: every implementation checks the
Stripe-Signature header against the signing secret with the Stripe SDK.
There is no unverified mode.
"""

import json
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

import stripe

from orderdesk.exceptions import PaymentConfigurationError, ValidationError

logger = logging.getLogger(__name__)

WEBHOOK_TOLERANCE_SECONDS = 300


@dataclass
class CheckoutLineItem:
    """
    One line on the hosted payment page.

    Attributes:
        name: Product name as stored in the database
        unit_amount: Price in the smallest currency unit (centavos)
        quantity: Units purchased
        image_url: Absolute image URL, if the product has one
    """
    name: str
    unit_amount: int
    quantity: int
    image_url: Optional[str] = None

    def to_stripe(self, currency: str) -> dict:
        """Render as a Stripe line_items entry with inline price_data."""
        product_data: dict[str, Any] = {"name": self.name}
        if self.image_url:
            product_data["images"] = [self.image_url]
        return {
            "price_data": {
                "currency": currency,
                "product_data": product_data,
                "unit_amount": self.unit_amount,
            },
            "quantity": self.quantity,
        }


@dataclass
class CheckoutSessionResult:
    """
    Standardized result from checkout session creation.

    Attributes:
        session_id: Provider session id (cs_...)
        url: Hosted page URL, when the provider returns one
        metadata: Metadata attached to the session
    """
    session_id: str
    url: Optional[str] = None
    metadata: dict = field(default_factory=dict)


class BasePaymentService(ABC):
    """
    Abstract base class for payment services.

    Example:
        >>> service = create_payment_service(settings)
        >>> result = await service.create_checkout_session(
        ...     line_items=[CheckoutLineItem("X-Burger", 1000, 2)],
        ...     metadata={"orderId": "42"},
        ...     success_url=url,
        ...     cancel_url=url,
        ... )
        >>> result.session_id
        'cs_...'
    """

    def __init__(self, webhook_secret: Optional[str] = None, currency: str = "brl"):
        self._webhook_secret = webhook_secret
        self.currency = currency

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the name of the payment provider ("mock", "stripe")."""

    @property
    def is_configured(self) -> bool:
        """Whether checkout sessions can be created."""
        return True

    @abstractmethod
    async def create_checkout_session(
        self,
        line_items: list[CheckoutLineItem],
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSessionResult:
        """
        Create a hosted checkout session.

        Args:
            line_items: Priced lines, amounts already in centavos
            metadata: Copied onto the session and its payment intent
            success_url: Redirect after payment
            cancel_url: Redirect when the customer abandons the page

        Returns:
            CheckoutSessionResult

        Raises:
            ExternalServiceError: If the provider rejects the request
        """

    def verify_webhook(self, payload: bytes, signature: Optional[str]) -> Any:
        """
        Verify and parse a webhook from the payment provider.

        Args:
            payload: Raw request body bytes
            signature: Stripe-Signature header value

        Returns:
            The verified event as a plain dict ("id", "type", "data", ...)

        Raises:
            PaymentConfigurationError: No signing secret configured
            ValidationError: Missing header, bad signature or malformed body
        """
        if not self._webhook_secret:
            raise PaymentConfigurationError(
                "Webhook signing secret is not configured", provider=self.provider_name
            )
        if not signature:
            raise ValidationError("Missing Stripe-Signature header")

        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"), signature, self._webhook_secret, tolerance=WEBHOOK_TOLERANCE_SECONDS
            )
            event = json.loads(payload)
        except stripe.SignatureVerificationError as e:
            logger.warning(f"{self.provider_name}: webhook signature invalid - {e}")
            raise ValidationError("Invalid webhook signature")
        except ValueError as e:
            logger.warning(f"{self.provider_name}: webhook payload malformed - {e}")
            raise ValidationError("Invalid webhook payload")

        if not isinstance(event, dict) or "type" not in event or not isinstance(event.get("data"), dict):
            raise ValidationError("Invalid webhook payload")

        logger.debug(f"{self.provider_name}: webhook verified - {event['type']}")
        return event

    @abstractmethod
    async def health_check(self) -> bool:
        """
        Verify connectivity to the payment service.

        Returns:
            bool: True if service is reachable and operational
        """
