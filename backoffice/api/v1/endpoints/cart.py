"""
Cart endpoints. Every route acts on one principal's cart and requires the
caller to be that principal or an admin.
"""

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.api.v1.deps import (ensure_self_or_admin, get_current_principal,
                                    get_db, require_self_or_admin)
from backoffice.schemas.account import MessageResponse
from backoffice.schemas.catalog import (CartAdd, CartRead, CartRemove,
                                        CartResponse, CartUpdate)
from backoffice.services import cart as cart_service
from backoffice.services.identity import Principal

router = APIRouter(prefix="/cart", tags=["cart"])


@router.post("/add", response_model=CartResponse)
async def add_to_cart(
    body: CartAdd,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> CartResponse:
    ensure_self_or_admin(principal, body.user_id)
    cart = await cart_service.add_item(db, body.user_id, body.product_id, body.quantity)
    return CartResponse(message="Item added to cart", cart=cart)


@router.get("/{user_id}", response_model=CartRead)
async def get_cart(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    _principal: Principal = Depends(require_self_or_admin),
) -> CartRead:
    return await cart_service.view_cart(db, user_id)


@router.put("/update", response_model=CartResponse)
async def update_cart_item(
    body: CartUpdate,
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> CartResponse:
    ensure_self_or_admin(principal, body.user_id)
    cart = await cart_service.update_item(db, body.user_id, body.product_id, body.quantity)
    return CartResponse(message="Cart updated", cart=cart)


@router.delete("/remove", response_model=CartResponse)
async def remove_cart_item(
    body: CartRemove = Body(...),
    db: AsyncSession = Depends(get_db),
    principal: Principal = Depends(get_current_principal),
) -> CartResponse:
    ensure_self_or_admin(principal, body.user_id)
    cart = await cart_service.remove_item(db, body.user_id, body.product_id)
    return CartResponse(message="Item removed", cart=cart)


@router.delete("/clear/{user_id}", response_model=MessageResponse)
async def clear_cart(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    _principal: Principal = Depends(require_self_or_admin),
) -> MessageResponse:
    await cart_service.clear_cart(db, user_id)
    return MessageResponse(message="Cart cleared")
