"""Pydantic schemas for orders and payment-gateway calls."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from backoffice.schemas.catalog import ProductRead


# ── Orders ──────────────────────────────────────────────────────────
class PlaceOrderRequest(BaseModel):
    """Only the payment details are read; any prices sent by the client are ignored."""

    payment_method: Literal["COD", "Online"] = "COD"
    payment_id: str | None = None


class OrderItemRead(BaseModel):
    product_id: int
    quantity: int
    unit_price: float
    product: ProductRead | None = None

    model_config = {"from_attributes": True}


class OrderRead(BaseModel):
    id: int
    principal_id: str
    items: list[OrderItemRead]
    total_amount: float
    payment_method: str
    payment_id: str | None
    gateway_order_id: str | None
    status: str
    created_at: datetime | None
    paid_at: datetime | None

    model_config = {"from_attributes": True}


class OrderResponse(BaseModel):
    success: bool = True
    message: str
    order: OrderRead


class OrderListResponse(BaseModel):
    success: bool = True
    orders: list[OrderRead]


# ── Payments ────────────────────────────────────────────────────────
class PaymentIntentRequest(BaseModel):
    """Either ``order_id`` or a bare ``amount`` in major units (rupees).

    With ``order_id`` the order's own total is charged and the gateway order
    is bound to it; only such intents can later settle that order.
    """

    order_id: int | None = None
    amount: Decimal | None = Field(default=None, gt=0)
    currency: str | None = None

    @model_validator(mode="after")
    def _order_or_amount(self) -> PaymentIntentRequest:
        if self.order_id is None and self.amount is None:
            raise ValueError("Either order_id or amount is required")
        return self


class GatewayOrder(BaseModel):
    """The subset of the gateway's order object this service relies on."""

    id: str
    amount: int
    currency: str
    receipt: str | None = None
    status: str | None = None

    model_config = {"extra": "ignore"}


class PaymentIntentResponse(BaseModel):
    success: bool = True
    order: GatewayOrder


class PaymentVerifyRequest(BaseModel):
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str
    order_id: int | None = None


class PaymentVerifyResponse(BaseModel):
    success: bool = True
    message: str
    order: OrderRead | None = None
