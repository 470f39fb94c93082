"""
Staff Authentication & Authorization

Passwords are hashed with argon2. Sessions are HS256 JWTs carried in the
auth cookie (or an Authorization: Bearer header) and decoded into a
validated TokenClaims model. authorize() is the single policy check used
by every admin route.
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import FrozenSet, Iterable, Optional

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError
from fastapi import Request
from pydantic import ValidationError as PydanticValidationError

from orderdesk.core.config import Settings
from orderdesk.exceptions import AuthenticationError, AuthorizationError
from orderdesk.models import Restaurant, User, UserRole
from orderdesk.schemas import CamelModel

logger = logging.getLogger(__name__)

STAFF_ROLES: FrozenSet[UserRole] = frozenset({UserRole.ADMIN, UserRole.MANAGER, UserRole.STAFF})
MANAGER_ROLES: FrozenSet[UserRole] = frozenset({UserRole.ADMIN, UserRole.MANAGER})
ADMIN_ROLES: FrozenSet[UserRole] = frozenset({UserRole.ADMIN})

_hasher = PasswordHasher()


# =============================================================================
# PASSWORDS
# =============================================================================

def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password_hash: str, password: str) -> bool:
    """Check a password against a stored argon2 hash."""
    try:
        return _hasher.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


# =============================================================================
# TOKENS
# =============================================================================

class TokenClaims(CamelModel):
    """Decoded staff session token."""

    user_id: str
    email: str
    name: str
    role: UserRole
    restaurant_id: str
    restaurant_slug: str
    restaurant_name: str
    iat: Optional[int] = None
    exp: Optional[int] = None


def create_access_token(user: User, restaurant: Restaurant, settings: Settings) -> str:
    """
    Issue a signed session token for a staff user.

    Args:
        user: Authenticated user
        restaurant: The user's restaurant
        settings: Supplies the secret, algorithm and lifetime

    Returns:
        Encoded JWT string
    """
    now = datetime.now(timezone.utc)
    claims = TokenClaims(
        user_id=user.id,
        email=user.email,
        name=user.name,
        role=user.role,
        restaurant_id=restaurant.id,
        restaurant_slug=restaurant.slug,
        restaurant_name=restaurant.name,
        iat=int(now.timestamp()),
        exp=int((now + timedelta(days=settings.jwt_expire_days)).timestamp()),
    )
    payload = claims.model_dump(mode="json", by_alias=True)
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str, settings: Settings) -> TokenClaims:
    """
    Verify a token signature and expiry, then validate its claims.

    Raises:
        AuthenticationError: If the token is expired, forged or malformed
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise AuthenticationError("Session expired")
    except jwt.InvalidTokenError as e:
        logger.debug(f"Rejected token: {e}")
        raise AuthenticationError("Invalid token")

    try:
        return TokenClaims.model_validate(payload)
    except PydanticValidationError:
        raise AuthenticationError("Invalid token claims")


def _extract_token(request: Request, cookie_name: str) -> Optional[str]:
    token = request.cookies.get(cookie_name)
    if token:
        return token

    header = request.headers.get("Authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value:
        return value.strip()
    return None


async def get_current_claims(request: Request) -> TokenClaims:
    """FastAPI dependency: the caller's validated staff claims."""
    settings: Settings = request.app.state.settings
    token = _extract_token(request, settings.auth_cookie_name)
    if not token:
        raise AuthenticationError("Not authenticated")
    return decode_access_token(token, settings)


# =============================================================================
# POLICY
# =============================================================================

def authorize(
    claims: TokenClaims,
    restaurant_id: Optional[str] = None,
    roles: Iterable[UserRole] = STAFF_ROLES,
) -> TokenClaims:
    """
    Enforce role membership and tenant ownership.

    Args:
        claims: Caller's validated claims
        restaurant_id: Tenant the resource belongs to (None skips the check)
        roles: Roles allowed to perform the action

    Returns:
        The same claims, for chaining

    Raises:
        AuthorizationError: Wrong role or another restaurant's resource
    """
    if claims.role not in frozenset(roles):
        logger.warning(f"User {claims.user_id} with role {claims.role.value} denied")
        raise AuthorizationError("Insufficient permissions")

    if restaurant_id is not None and restaurant_id != claims.restaurant_id:
        logger.warning(
            f"User {claims.user_id} attempted cross-tenant access "
            f"({claims.restaurant_id} -> {restaurant_id})"
        )
        raise AuthorizationError("Access denied for this restaurant")

    return claims
