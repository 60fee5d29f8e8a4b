"""
Cart operations: one cart per principal, lines merged by product.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from backoffice.core.exceptions import NotFoundError
from backoffice.models.cart import Cart, CartItem
from backoffice.schemas.catalog import CartRead
from backoffice.services.catalog import get_available_product

logger = logging.getLogger(__name__)


async def discard_cart(db: AsyncSession, cart: Cart) -> bool:
    """Delete *cart*. Safe to repeat; a failure is logged and left for cleanup."""
    try:
        await db.delete(cart)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        logger.warning(
            "Orphaned cart %s for principal %s (order %s) could not be deleted: %s",
            cart.id,
            cart.principal_id,
            cart.checked_out_order_id,
            exc,
        )
        return False
    return True


async def get_live_cart(db: AsyncSession, principal_id: str, *, lock: bool = False) -> Cart | None:
    """Return the principal's cart, dropping a leftover one that was already checked out."""
    query = select(Cart).where(Cart.principal_id == principal_id)
    if lock:
        query = query.with_for_update()
    result = await db.execute(query)
    cart = result.scalar_one_or_none()
    if cart is not None and cart.checked_out_order_id is not None:
        logger.info("Removing checked-out cart %s left behind by order %s", cart.id, cart.checked_out_order_id)
        await discard_cart(db, cart)
        return None
    return cart


async def _get_or_create_cart(db: AsyncSession, principal_id: str) -> Cart:
    cart = await get_live_cart(db, principal_id)
    if cart is not None:
        return cart
    cart = Cart(principal_id=principal_id)
    db.add(cart)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        result = await db.execute(select(Cart).where(Cart.principal_id == principal_id))
        return result.scalar_one()
    await db.refresh(cart, attribute_names=["items"])
    return cart


def _touch(cart: Cart) -> None:
    # Bumps version_id so an in-flight checkout of the old contents fails.
    cart.updated_at = datetime.now(timezone.utc)


def _find_line(cart: Cart, product_id: int) -> CartItem | None:
    return next((item for item in cart.items if item.product_id == product_id), None)


async def view_cart(db: AsyncSession, principal_id: str) -> CartRead:
    cart = await get_live_cart(db, principal_id)
    if cart is None:
        return CartRead(user_id=principal_id, items=[])
    result = await db.execute(
        select(Cart)
        .where(Cart.id == cart.id)
        .options(selectinload(Cart.items).selectinload(CartItem.product))
        .execution_options(populate_existing=True)
    )
    cart = result.scalar_one()
    return CartRead.model_validate(
        {"user_id": principal_id, "items": list(cart.items)}, from_attributes=True
    )


async def add_item(db: AsyncSession, principal_id: str, product_id: int, quantity: int) -> CartRead:
    product = await get_available_product(db, product_id)
    cart = await _get_or_create_cart(db, principal_id)

    line = _find_line(cart, product.id)
    if line is not None:
        line.quantity += quantity
    else:
        cart.items.append(CartItem(product_id=product.id, quantity=quantity))
    _touch(cart)
    await db.commit()
    logger.info("Cart %s: +%d x product %d", cart.id, quantity, product.id)
    return await view_cart(db, principal_id)


async def update_item(db: AsyncSession, principal_id: str, product_id: int, quantity: int) -> CartRead:
    cart = await get_live_cart(db, principal_id)
    if cart is None:
        raise NotFoundError("Cart not found")
    line = _find_line(cart, product_id)
    if line is None:
        raise NotFoundError("Item not found in cart")
    line.quantity = quantity
    _touch(cart)
    await db.commit()
    return await view_cart(db, principal_id)


async def remove_item(db: AsyncSession, principal_id: str, product_id: int) -> CartRead:
    cart = await get_live_cart(db, principal_id)
    if cart is None:
        raise NotFoundError("Cart not found")
    line = _find_line(cart, product_id)
    if line is not None:
        cart.items.remove(line)
        _touch(cart)
        await db.commit()
    return await view_cart(db, principal_id)


async def clear_cart(db: AsyncSession, principal_id: str) -> None:
    """Empty the cart but keep the row."""
    cart = await get_live_cart(db, principal_id)
    if cart is None:
        raise NotFoundError("Cart not found")
    cart.items.clear()
    _touch(cart)
    await db.commit()
    logger.info("Cart %s cleared", cart.id)
