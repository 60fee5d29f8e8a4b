"""
Payment endpoints — gateway order creation and callback verification.

Both handlers are also mounted under ``/orders`` for older clients.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from backoffice.api.v1.deps import (get_current_principal, get_db,
                                    get_payment_gateway, get_payment_verifier)
from backoffice.core.exceptions import ValidationError
from backoffice.schemas.order import (OrderRead, PaymentIntentRequest,
                                      PaymentIntentResponse, PaymentVerifyRequest,
                                      PaymentVerifyResponse)
from backoffice.services.checkout import CheckoutEngine
from backoffice.services.identity import Principal
from backoffice.services.payments import PaymentGateway, PaymentVerifier

router = APIRouter(prefix="/payment", tags=["payment"])
logger = logging.getLogger(__name__)


async def create_payment_order(
    body: PaymentIntentRequest,
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_payment_gateway),
    principal: Principal = Depends(get_current_principal),
) -> PaymentIntentResponse:
    """Create a gateway order ready for client capture.

    With ``order_id`` the order's total is charged and the gateway order is
    bound to it; otherwise ``amount`` (major units) is charged unbound.
    """
    engine = CheckoutEngine(db, gateway)
    if body.order_id is not None:
        order = await engine.create_order_payment_intent(body.order_id, principal, body.currency)
    else:
        order = await engine.create_payment_intent(body.amount, body.currency)
    logger.info("Payment intent %s created for %s", order.id, principal.id)
    return PaymentIntentResponse(order=order)


async def verify_payment(
    body: PaymentVerifyRequest,
    db: AsyncSession = Depends(get_db),
    verifier: PaymentVerifier = Depends(get_payment_verifier),
    principal: Principal = Depends(get_current_principal),
) -> PaymentVerifyResponse:
    """Check the gateway signature; with ``order_id`` also mark that order Paid."""
    if not verifier.verify(
        body.razorpay_order_id, body.razorpay_payment_id, body.razorpay_signature
    ):
        logger.warning(
            "Signature mismatch for gateway order %s (caller %s)",
            body.razorpay_order_id,
            principal.id,
        )
        raise ValidationError("Invalid signature")

    if body.order_id is None:
        return PaymentVerifyResponse(message="Payment verified successfully")

    order = await CheckoutEngine(db).record_verified_payment(
        body.order_id, principal, body.razorpay_order_id, body.razorpay_payment_id
    )
    return PaymentVerifyResponse(
        message="Payment verified successfully", order=OrderRead.model_validate(order)
    )


router.add_api_route(
    "/create-order", create_payment_order, methods=["POST"], response_model=PaymentIntentResponse
)
router.add_api_route(
    "/verify", verify_payment, methods=["POST"], response_model=PaymentVerifyResponse
)
