"""
Staff account registration and login.
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from orderdesk.core.config import Settings
from orderdesk.core.security import create_access_token, hash_password, verify_password
from orderdesk.exceptions import AuthenticationError, AuthorizationError, ValidationError
from orderdesk.models import Restaurant, User, UserRole, utcnow
from orderdesk.schemas import (
    LoginRequest,
    RegisterRequest,
    RegisterResponse,
    RestaurantSummary,
    UserResponse,
)

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, session: AsyncSession, settings: Settings):
        self.session = session
        self.settings = settings

    async def register(self, data: RegisterRequest) -> RegisterResponse:
        """
        Create a restaurant and its first ADMIN user in one transaction.

        Raises:
            ValidationError: Slug or email already taken
        """
        existing = await self.session.execute(
            select(Restaurant.id).where(Restaurant.slug == data.restaurant_slug)
        )
        if existing.first() is not None:
            raise ValidationError(f"Slug '{data.restaurant_slug}' is already in use")

        existing = await self.session.execute(select(User.id).where(User.email == data.email))
        if existing.first() is not None:
            raise ValidationError("Email is already registered")

        restaurant = Restaurant(
            name=data.restaurant_name.strip(),
            slug=data.restaurant_slug,
            description=data.description,
        )
        self.session.add(restaurant)
        try:
            await self.session.flush()
            self.session.add(
                User(
                    name=data.owner_name.strip(),
                    email=data.email,
                    password=hash_password(data.password),
                    role=UserRole.ADMIN,
                    restaurant_id=restaurant.id,
                )
            )
            await self.session.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration
            await self.session.rollback()
            raise ValidationError("Slug or email is already in use")

        logger.info(f"Restaurant '{restaurant.slug}' registered by {data.email}")
        return RegisterResponse(
            message="Restaurant registered",
            restaurant=RestaurantSummary.model_validate(restaurant),
        )

    async def login(self, data: LoginRequest) -> tuple[str, UserResponse]:
        """
        Verify credentials and issue a session token.

        Returns:
            (token, user)

        Raises:
            AuthenticationError: Unknown email, wrong password or disabled user
            AuthorizationError: The user's restaurant is suspended
        """
        result = await self.session.execute(
            select(User).options(selectinload(User.restaurant)).where(User.email == data.email)
        )
        user = result.scalar_one_or_none()

        if user is None or not verify_password(user.password, data.password):
            logger.warning(f"Failed login for {data.email}")
            raise AuthenticationError("Invalid email or password")
        if not user.is_active:
            raise AuthenticationError("User account is disabled")
        if not user.restaurant.is_active:
            raise AuthorizationError("Restaurant is suspended")

        user.last_login = utcnow()
        await self.session.commit()

        token = create_access_token(user, user.restaurant, self.settings)
        logger.info(f"User {user.email} logged in ({user.role.value})")
        return token, UserResponse.model_validate(user)
