"""
Product catalog endpoints. Reads are public; writes are admin-only and
deletion is soft.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.api.v1.deps import get_db, require_admin
from backoffice.core.exceptions import NotFoundError
from backoffice.models.catalog import Product
from backoffice.schemas.account import MessageResponse
from backoffice.schemas.catalog import ProductCreate, ProductRead, ProductUpdate
from backoffice.services.catalog import get_available_product
from backoffice.services.identity import Principal

router = APIRouter(prefix="/products", tags=["products"])
logger = logging.getLogger(__name__)


async def _get_product(db: AsyncSession, product_id: int) -> Product:
    product = await db.get(Product, product_id)
    if product is None:
        raise NotFoundError("Product not found")
    return product


@router.get("/", response_model=list[ProductRead])
async def list_products(
    category: str | None = None,
    db: AsyncSession = Depends(get_db),
) -> list[ProductRead]:
    query = select(Product).where(Product.is_active.is_(True))
    if category:
        query = query.where(Product.category == category)
    result = await db.execute(query.order_by(Product.id))
    return [ProductRead.model_validate(p) for p in result.scalars().all()]


@router.get("/{product_id}", response_model=ProductRead)
async def get_product(
    product_id: int,
    db: AsyncSession = Depends(get_db),
) -> ProductRead:
    return ProductRead.model_validate(await get_available_product(db, product_id))


@router.post("/", response_model=ProductRead, status_code=201)
async def create_product(
    body: ProductCreate,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_admin),
) -> ProductRead:
    product = Product(**body.model_dump())
    db.add(product)
    await db.commit()
    await db.refresh(product)
    logger.info("Product %d (%s) created by %s", product.id, product.name, admin.email)
    return ProductRead.model_validate(product)


@router.put("/{product_id}", response_model=ProductRead)
async def update_product(
    product_id: int,
    body: ProductUpdate,
    db: AsyncSession = Depends(get_db),
    _admin: Principal = Depends(require_admin),
) -> ProductRead:
    product = await _get_product(db, product_id)
    for field, value in body.model_dump(exclude_unset=True).items():
        setattr(product, field, value)
    await db.commit()
    await db.refresh(product)
    return ProductRead.model_validate(product)


@router.delete("/{product_id}", response_model=MessageResponse)
async def delete_product(
    product_id: int,
    db: AsyncSession = Depends(get_db),
    admin: Principal = Depends(require_admin),
) -> MessageResponse:
    """Soft delete: existing orders keep pointing at the row."""
    product = await _get_product(db, product_id)
    product.is_active = False
    await db.commit()
    logger.info("Product %d deactivated by %s", product_id, admin.email)
    return MessageResponse(message="Product deleted")
