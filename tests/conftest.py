"""Shared pytest fixtures: an in-memory app wired to SQLite and in-process services."""

from decimal import Decimal
from typing import Any, AsyncIterator

import httpx
import pytest

from orderdesk.core.config import Settings
from orderdesk.core.security import hash_password
from orderdesk.database import Database
from orderdesk.main import create_app
from orderdesk.models import MenuCategory, Product, Restaurant, User, UserRole
from orderdesk.services.cache import InMemoryViewCache
from orderdesk.services.fanout import StatusFanout
from orderdesk.services.orders import OrderService
from orderdesk.services.payment import MockPaymentService
from orderdesk.services.realtime import InMemoryRealtimeService

from helpers import STAFF_PASSWORD, WEBHOOK_SECRET, token_for


@pytest.fixture
def settings() -> Settings:
    return Settings(
        env_mode="development",
        debug=False,
        database_url="sqlite+aiosqlite:///:memory:",
        stripe_webhook_secret=WEBHOOK_SECRET,
        jwt_secret="test-jwt-secret",
        public_base_url="http://storefront.test",
        cors_origins="http://storefront.test",
    )


@pytest.fixture
async def database(settings: Settings) -> AsyncIterator[Database]:
    db = Database(settings.database_url)
    await db.create_all()
    yield db
    await db.dispose()


@pytest.fixture
async def session(database: Database):
    async with database.session() as s:
        yield s


@pytest.fixture
def payment() -> MockPaymentService:
    return MockPaymentService(webhook_secret=WEBHOOK_SECRET, min_latency=0, max_latency=0)


@pytest.fixture
def realtime() -> InMemoryRealtimeService:
    return InMemoryRealtimeService()


@pytest.fixture
def cache() -> InMemoryViewCache:
    return InMemoryViewCache(default_ttl=30)


@pytest.fixture
def order_service(session, realtime, cache) -> OrderService:
    return OrderService(session, StatusFanout(realtime), cache)


@pytest.fixture
def app(settings, database, payment, realtime, cache):
    return create_app(
        settings=settings,
        database=database,
        payment_service=payment,
        realtime=realtime,
        cache=cache,
    )


@pytest.fixture
async def client(app) -> AsyncIterator[httpx.AsyncClient]:
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c


# =============================================================================
# SEED DATA
# =============================================================================

@pytest.fixture
async def seeded(database: Database) -> dict[str, Any]:
    """
    Two restaurants. burger-house has a Burgers category with a 10.00 burger
    and a 5.50 soda; pizza-place has one 30.00 pizza. Each has an ADMIN and
    burger-house also has a STAFF user.
    """
    async with database.session() as s:
        burger = Restaurant(slug="burger-house", name="Burger House", description="Smash burgers")
        pizza = Restaurant(slug="pizza-place", name="Pizza Place")
        s.add_all([burger, pizza])
        await s.flush()

        burgers = MenuCategory(name="Burgers", restaurant_id=burger.id)
        pizzas = MenuCategory(name="Pizzas", restaurant_id=pizza.id)
        s.add_all([burgers, pizzas])
        await s.flush()

        classic = Product(
            name="Classic Burger",
            price=Decimal("10.00"),
            ingredients=["bun", "beef", "cheese"],
            restaurant_id=burger.id,
            menu_category_id=burgers.id,
        )
        soda = Product(
            name="Soda",
            price=Decimal("5.50"),
            restaurant_id=burger.id,
            menu_category_id=burgers.id,
        )
        margherita = Product(
            name="Margherita",
            price=Decimal("30.00"),
            restaurant_id=pizza.id,
            menu_category_id=pizzas.id,
        )
        s.add_all([classic, soda, margherita])

        admin = User(
            name="Ana Admin",
            email="admin@burger.test",
            password=hash_password(STAFF_PASSWORD),
            role=UserRole.ADMIN,
            restaurant_id=burger.id,
        )
        staff = User(
            name="Sam Staff",
            email="staff@burger.test",
            password=hash_password(STAFF_PASSWORD),
            role=UserRole.STAFF,
            restaurant_id=burger.id,
        )
        pizza_admin = User(
            name="Paula Pizza",
            email="admin@pizza.test",
            password=hash_password(STAFF_PASSWORD),
            role=UserRole.ADMIN,
            restaurant_id=pizza.id,
        )
        s.add_all([admin, staff, pizza_admin])
        await s.commit()

        return {
            "restaurant": burger,
            "other_restaurant": pizza,
            "category": burgers,
            "burger": classic,
            "soda": soda,
            "pizza": margherita,
            "admin": admin,
            "staff": staff,
            "other_admin": pizza_admin,
        }


@pytest.fixture
def admin_headers(seeded, settings) -> dict[str, str]:
    return {"Authorization": f"Bearer {token_for(seeded['admin'], seeded['restaurant'], settings)}"}


@pytest.fixture
def staff_headers(seeded, settings) -> dict[str, str]:
    return {"Authorization": f"Bearer {token_for(seeded['staff'], seeded['restaurant'], settings)}"}


@pytest.fixture
def other_admin_headers(seeded, settings) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {token_for(seeded['other_admin'], seeded['other_restaurant'], settings)}"
    }
