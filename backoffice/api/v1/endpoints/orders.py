"""
Order endpoints — checkout and order history.
"""

from fastapi import APIRouter, Body, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.api.v1.deps import get_db, require_self_or_admin
from backoffice.api.v1.endpoints.payment import create_payment_order, verify_payment
from backoffice.schemas.order import (OrderListResponse, OrderRead,
                                      OrderResponse, PaymentIntentResponse,
                                      PaymentVerifyResponse, PlaceOrderRequest)
from backoffice.services.checkout import CheckoutEngine
from backoffice.services.identity import Principal

router = APIRouter(prefix="/orders", tags=["orders"])


@router.post("/place/{user_id}", response_model=OrderResponse)
async def place_order(
    user_id: str,
    body: PlaceOrderRequest | None = Body(default=None),
    db: AsyncSession = Depends(get_db),
    _principal: Principal = Depends(require_self_or_admin),
) -> OrderResponse:
    """Check out the cart of ``user_id`` at current catalog prices."""
    body = body or PlaceOrderRequest()
    order = await CheckoutEngine(db).place_order(user_id, body.payment_method, body.payment_id)
    return OrderResponse(message="Order placed successfully", order=OrderRead.model_validate(order))


@router.get("/{user_id}", response_model=OrderListResponse)
async def list_orders(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    _principal: Principal = Depends(require_self_or_admin),
) -> OrderListResponse:
    orders = await CheckoutEngine(db).list_orders(user_id)
    return OrderListResponse(orders=[OrderRead.model_validate(o) for o in orders])


router.add_api_route(
    "/create", create_payment_order, methods=["POST"], response_model=PaymentIntentResponse
)
router.add_api_route(
    "/verify", verify_payment, methods=["POST"], response_model=PaymentVerifyResponse
)
