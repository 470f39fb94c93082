"""
Menu Service

Public menu reads plus back-office management of categories, products and
the store open/closed flag. Every write is scoped to the caller's
restaurant through authorize().

Rules:
    - A product is never active inside an inactive category. Switching a
      category off switches its products off; switching a product on inside
      an inactive category is refused.
    - Anything an order line points at is never deleted. Products (and the
      categories holding them) that were ever ordered must be deactivated
      instead.
"""

import logging
from typing import Optional

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from orderdesk.core.security import ADMIN_ROLES, MANAGER_ROLES, TokenClaims, authorize
from orderdesk.exceptions import NotFoundError, ValidationError
from orderdesk.models import MenuCategory, OrderProduct, Product, Restaurant
from orderdesk.schemas import (
    CategoryCreate,
    CategoryResponse,
    CategoryUpdate,
    DeletedResponse,
    MenuCategoryResponse,
    MenuResponse,
    MenuRestaurantResponse,
    ProductCreate,
    ProductResponse,
    ProductUpdate,
)
from orderdesk.services.cache import BaseViewCache, menu_key

logger = logging.getLogger(__name__)


class MenuService:
    def __init__(self, session: AsyncSession, cache: BaseViewCache):
        self.session = session
        self.cache = cache

    # =========================================================================
    # PUBLIC MENU
    # =========================================================================

    async def public_menu(self, slug: str) -> MenuResponse:
        """Active categories with their active products, oldest first."""
        cached = await self.cache.get(menu_key(slug))
        if cached is not None:
            return MenuResponse.model_validate(cached)

        result = await self.session.execute(
            select(Restaurant).where(Restaurant.slug == slug, Restaurant.is_active.is_(True))
        )
        restaurant = result.scalar_one_or_none()
        if restaurant is None:
            raise NotFoundError(f"Restaurant '{slug}' not found")

        result = await self.session.execute(
            select(MenuCategory)
            .where(MenuCategory.restaurant_id == restaurant.id, MenuCategory.is_active.is_(True))
            .options(selectinload(MenuCategory.products))
            .order_by(MenuCategory.created_at)
        )
        categories = []
        for category in result.scalars().all():
            products = sorted(
                (p for p in category.products if p.is_active),
                key=lambda p: p.created_at,
            )
            categories.append(
                MenuCategoryResponse(
                    id=category.id,
                    name=category.name,
                    description=category.description,
                    is_active=category.is_active,
                    products=[ProductResponse.model_validate(p) for p in products],
                )
            )

        menu = MenuResponse(
            restaurant=MenuRestaurantResponse(
                id=restaurant.id,
                name=restaurant.name,
                slug=restaurant.slug,
                description=restaurant.description,
                avatar_image_url=restaurant.avatar_image_url,
                cover_image_url=restaurant.cover_image_url,
                is_open=restaurant.is_open,
                categories=categories,
            )
        )
        await self.cache.set(menu_key(slug), menu.model_dump(mode="json", by_alias=True))
        return menu

    async def _invalidate(self, claims: TokenClaims) -> None:
        await self.cache.delete(menu_key(claims.restaurant_slug))

    # =========================================================================
    # CATEGORIES
    # =========================================================================

    async def _get_category(self, category_id: str, claims: TokenClaims, roles=MANAGER_ROLES) -> MenuCategory:
        category = await self.session.get(MenuCategory, category_id)
        if category is None:
            raise NotFoundError(f"Category {category_id} not found")
        authorize(claims, restaurant_id=category.restaurant_id, roles=roles)
        return category

    async def create_category(self, data: CategoryCreate, claims: TokenClaims) -> CategoryResponse:
        authorize(claims, roles=MANAGER_ROLES)

        category = MenuCategory(
            name=data.name.strip(),
            description=data.description,
            restaurant_id=claims.restaurant_id,
        )
        self.session.add(category)
        await self.session.commit()

        logger.info(f"Category '{category.name}' created for {claims.restaurant_slug}")
        await self._invalidate(claims)
        return CategoryResponse.model_validate(category)

    async def update_category(
        self, category_id: str, data: CategoryUpdate, claims: TokenClaims
    ) -> CategoryResponse:
        category = await self._get_category(category_id, claims)

        if data.name is not None:
            category.name = data.name.strip()
        if data.description is not None:
            category.description = data.description
        await self.session.commit()

        await self._invalidate(claims)
        return CategoryResponse.model_validate(category)

    async def toggle_category(self, category_id: str, is_active: bool, claims: TokenClaims) -> CategoryResponse:
        """Switch a category on or off; off also switches its products off."""
        category = await self._get_category(category_id, claims)
        category.is_active = is_active

        if not is_active:
            await self.session.execute(
                update(Product)
                .where(Product.menu_category_id == category.id)
                .values(is_active=False)
                .execution_options(synchronize_session=False)
            )
        await self.session.commit()

        logger.info(f"Category {category.id} {'activated' if is_active else 'deactivated'}")
        await self._invalidate(claims)
        return CategoryResponse.model_validate(category)

    async def delete_category(self, category_id: str, claims: TokenClaims) -> DeletedResponse:
        """Delete a category and its products, unless any of them was ever ordered."""
        category = await self._get_category(category_id, claims, roles=ADMIN_ROLES)

        result = await self.session.execute(
            select(func.count(OrderProduct.id))
            .join(Product, OrderProduct.product_id == Product.id)
            .where(Product.menu_category_id == category.id)
        )
        if result.scalar_one():
            raise ValidationError(
                "Category has products referenced by orders",
                detail="Deactivate the category instead",
            )

        name = category.name
        await self.session.delete(category)
        await self.session.commit()

        logger.info(f"Category '{name}' deleted from {claims.restaurant_slug}")
        await self._invalidate(claims)
        return DeletedResponse(message="Category deleted", id=category_id, name=name)

    # =========================================================================
    # PRODUCTS
    # =========================================================================

    async def _get_product(self, product_id: str, claims: TokenClaims, roles=MANAGER_ROLES) -> Product:
        product = await self.session.get(Product, product_id, options=[selectinload(Product.menu_category)])
        if product is None:
            raise NotFoundError(f"Product {product_id} not found")
        authorize(claims, restaurant_id=product.restaurant_id, roles=roles)
        return product

    async def create_product(self, data: ProductCreate, claims: TokenClaims) -> ProductResponse:
        """Create a product; it starts active only if its category is active."""
        authorize(claims, roles=MANAGER_ROLES)
        category = await self._get_category(data.menu_category_id, claims)

        product = Product(
            name=data.name.strip(),
            description=data.description,
            price=data.price,
            image_url=data.image_url,
            ingredients=list(data.ingredients),
            is_active=category.is_active,
            restaurant_id=claims.restaurant_id,
            menu_category_id=category.id,
        )
        self.session.add(product)
        await self.session.commit()

        logger.info(f"Product '{product.name}' created in '{category.name}'")
        await self._invalidate(claims)
        return ProductResponse.model_validate(product)

    async def update_product(
        self, product_id: str, data: ProductUpdate, claims: TokenClaims
    ) -> ProductResponse:
        """
        Update product details.

        A price change only affects future orders; existing order lines keep
        their snapshots.
        """
        product = await self._get_product(product_id, claims)

        if data.menu_category_id is not None and data.menu_category_id != product.menu_category_id:
            category = await self._get_category(data.menu_category_id, claims)
            if product.is_active and not category.is_active:
                raise ValidationError("Cannot move an active product into an inactive category")
            product.menu_category_id = category.id

        for field in ("name", "description", "price", "image_url"):
            value = getattr(data, field)
            if value is not None:
                setattr(product, field, value.strip() if field == "name" else value)
        if data.ingredients is not None:
            product.ingredients = list(data.ingredients)

        await self.session.commit()
        await self._invalidate(claims)
        return ProductResponse.model_validate(product)

    async def toggle_product(self, product_id: str, is_active: bool, claims: TokenClaims) -> ProductResponse:
        product = await self._get_product(product_id, claims)

        if is_active and not product.menu_category.is_active:
            raise ValidationError(
                "Cannot activate a product in an inactive category",
                detail=f"Activate category '{product.menu_category.name}' first",
            )

        product.is_active = is_active
        await self.session.commit()

        logger.info(f"Product {product.id} {'activated' if is_active else 'deactivated'}")
        await self._invalidate(claims)
        return ProductResponse.model_validate(product)

    async def delete_product(self, product_id: str, claims: TokenClaims) -> DeletedResponse:
        product = await self._get_product(product_id, claims, roles=ADMIN_ROLES)

        result = await self.session.execute(
            select(func.count(OrderProduct.id)).where(OrderProduct.product_id == product.id)
        )
        if result.scalar_one():
            raise ValidationError(
                "Product is referenced by orders",
                detail="Deactivate the product instead",
            )

        name = product.name
        await self.session.delete(product)
        await self.session.commit()

        logger.info(f"Product '{name}' deleted from {claims.restaurant_slug}")
        await self._invalidate(claims)
        return DeletedResponse(message="Product deleted", id=product_id, name=name)

    # =========================================================================
    # STORE
    # =========================================================================

    async def toggle_store(self, slug: str, is_open: bool, claims: TokenClaims) -> bool:
        """Open or close the caller's restaurant for new orders."""
        result = await self.session.execute(select(Restaurant).where(Restaurant.slug == slug))
        restaurant: Optional[Restaurant] = result.scalar_one_or_none()
        if restaurant is None:
            raise NotFoundError(f"Restaurant '{slug}' not found")
        authorize(claims, restaurant_id=restaurant.id, roles=MANAGER_ROLES)

        restaurant.is_open = is_open
        await self.session.commit()

        logger.info(f"Restaurant {slug} is now {'open' if is_open else 'closed'}")
        await self.cache.delete(menu_key(slug))
        return restaurant.is_open
