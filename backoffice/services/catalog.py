"""Catalog lookups used by carts and checkout."""

from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.core.exceptions import ProductUnavailable
from backoffice.models.catalog import Product


async def get_available_product(db: AsyncSession, product_id: int) -> Product:
    result = await db.execute(
        select(Product).where(Product.id == product_id, Product.is_active.is_(True))
    )
    product = result.scalar_one_or_none()
    if product is None:
        raise ProductUnavailable()
    return product


async def get_available_products(db: AsyncSession, product_ids: list[int]) -> dict[int, Product]:
    """Fresh read of the given products keyed by id; inactive ones are left out."""
    if not product_ids:
        return {}
    result = await db.execute(
        select(Product)
        .where(Product.id.in_(product_ids), Product.is_active.is_(True))
        .execution_options(populate_existing=True)
    )
    return {p.id: p for p in result.scalars().all()}
