"""
Payment Service Factory

Provides a single entry point for building the payment service.
create_app() calls it once per process and stores the result on app.state.

Environment Switching:
    - ENV_MODE=development -> MockPaymentService (no API calls)
    - ENV_MODE=staging -> StripePaymentService (test keys)
    - ENV_MODE=production -> StripePaymentService (live keys)
"""

import logging

from orderdesk.core.config import Settings
from orderdesk.services.payment.base import (
    BasePaymentService,
    CheckoutLineItem,
    CheckoutSessionResult,
)
from orderdesk.services.payment.mock import MockPaymentService
from orderdesk.services.payment.stripe import StripePaymentService

logger = logging.getLogger(__name__)


def create_payment_service(settings: Settings) -> BasePaymentService:
    """
    Build the payment service for the configured environment.

    Args:
        settings: Application settings

    Returns:
        BasePaymentService: Mock in development, Stripe otherwise
    """
    if settings.use_real_services:
        logger.info(f"Payment Service: Using StripePaymentService ({settings.env_mode.value} mode)")
        return StripePaymentService(
            api_key=settings.stripe_secret_key,
            webhook_secret=settings.stripe_webhook_secret,
            currency=settings.stripe_currency,
        )

    logger.info("Payment Service: Using MockPaymentService (development mode)")
    return MockPaymentService(
        webhook_secret=settings.stripe_webhook_secret,
        currency=settings.stripe_currency,
    )


__all__ = [
    "create_payment_service",
    "BasePaymentService",
    "CheckoutLineItem",
    "CheckoutSessionResult",
    "MockPaymentService",
    "StripePaymentService",
]
