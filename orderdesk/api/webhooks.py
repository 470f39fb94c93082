"""
Stripe webhook endpoint.

Configure this URL in the Stripe dashboard:
    https://your-domain.com/api/webhooks/stripe
"""

import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, Header, Request

from orderdesk.api.dependencies import get_payment_service, get_webhook_service
from orderdesk.schemas import ErrorResponse
from orderdesk.services.payment import BasePaymentService
from orderdesk.services.webhooks import WebhookService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/webhooks", tags=["Webhooks"])


@router.post(
    "/stripe",
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    summary="Stripe Webhook Endpoint",
)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    payment: BasePaymentService = Depends(get_payment_service),
    webhooks: WebhookService = Depends(get_webhook_service),
) -> dict[str, Any]:
    """
    Verify the Stripe-Signature header over the raw body, then apply the event.

    An invalid signature is a 400 and changes nothing. Events that cannot be
    applied are still acknowledged with 200 so Stripe stops retrying.
    """
    payload = await request.body()
    event = payment.verify_webhook(payload, stripe_signature)

    outcome = await webhooks.handle_event(event)
    return {"received": True, "outcome": outcome.value}
