"""Test helpers shared across modules (importable, unlike conftest)."""

import hashlib
import hmac
import json
import time
from typing import Any, Optional

from orderdesk.core.config import Settings
from orderdesk.core.security import TokenClaims, create_access_token
from orderdesk.models import Restaurant, User

WEBHOOK_SECRET = "whsec_test_secret"
VALID_CPF = "529.982.247-25"
VALID_CPF_DIGITS = "52998224725"
STAFF_PASSWORD = "correct-horse-battery"


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: Optional[int] = None) -> str:
    """Stripe-Signature header value for a raw payload."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload}".encode("utf-8")
    signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


def stripe_event(event_type: str, order_id: Any, event_id: str = "evt_test") -> str:
    return json.dumps(
        {
            "id": event_id,
            "object": "event",
            "type": event_type,
            "data": {"object": {"id": "cs_test_123", "metadata": {"orderId": str(order_id)}}},
        }
    )


def token_for(user: User, restaurant: Restaurant, settings: Settings) -> str:
    return create_access_token(user, restaurant, settings)


def claims_for(user: User, restaurant: Restaurant) -> TokenClaims:
    return TokenClaims(
        user_id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        restaurant_id=restaurant.id,
        restaurant_slug=restaurant.slug,
        restaurant_name=restaurant.name,
    )


def order_payload(seeded: dict[str, Any], **overrides: Any) -> dict[str, Any]:
    """Order intake body: 2 burgers and 1 soda (25.50) for pickup."""
    body = {
        "customerName": "Maria Silva",
        "customerCpf": VALID_CPF,
        "customerPhone": "(11) 98765-4321",
        "consumptionMethod": "DINE_IN",
        "products": [
            {"id": seeded["burger"].id, "quantity": 2},
            {"id": seeded["soda"].id, "quantity": 1},
        ],
        "slug": "burger-house",
    }
    body.update(overrides)
    return body
