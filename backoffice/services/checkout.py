"""
Checkout engine — turns a cart into an immutable order.

Prices always come from the catalog at the moment of checkout. The order
insert and the cart claim share one transaction; the cart row carries an
optimistic version so two concurrent checkouts of the same cart cannot
both succeed. Deleting the claimed cart happens afterwards and is allowed
to fail (it is logged and retried on the principal's next cart access).
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from sqlalchemy.orm.exc import StaleDataError

from backoffice.core.config import settings
from backoffice.core.exceptions import (AppError, ConflictError, EmptyCart, ForbiddenError,
                                        NotFoundError, ProductUnavailable,
                                        ValidationError)
from backoffice.models.order import (ORDER_PAID, ORDER_PENDING, PAYMENT_METHODS,
                                     PAYMENT_ONLINE, Order, OrderItem)
from backoffice.schemas.order import GatewayOrder
from backoffice.services.cart import discard_cart, get_live_cart
from backoffice.services.catalog import get_available_products
from backoffice.services.identity import Principal
from backoffice.services.payments import PaymentGateway, new_receipt_id, to_minor_units

logger = logging.getLogger(__name__)


class CheckoutEngine:
    def __init__(self, db: AsyncSession, gateway: PaymentGateway | None = None):
        self.db = db
        self.gateway = gateway

    async def get_order(self, order_id: int) -> Order:
        result = await self.db.execute(
            select(Order)
            .where(Order.id == order_id)
            .options(selectinload(Order.items).selectinload(OrderItem.product))
            .execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError("Order not found")
        return order

    async def list_orders(self, principal_id: str) -> list[Order]:
        result = await self.db.execute(
            select(Order)
            .where(Order.principal_id == principal_id)
            .options(selectinload(Order.items).selectinload(OrderItem.product))
            .order_by(Order.created_at.desc(), Order.id.desc())
        )
        return list(result.scalars().all())

    async def place_order(
        self,
        principal_id: str,
        payment_method: str = "COD",
        payment_reference: str | None = None,
    ) -> Order:
        if payment_method not in PAYMENT_METHODS:
            raise ValidationError("Invalid payment method")

        cart = await get_live_cart(self.db, principal_id, lock=True)
        if cart is None or not cart.items:
            raise EmptyCart()

        products = await get_available_products(self.db, [item.product_id for item in cart.items])
        order_items: list[OrderItem] = []
        total = Decimal("0")
        for item in cart.items:
            product = products.get(item.product_id)
            if product is None:
                await self.db.rollback()
                raise ProductUnavailable(f"Product {item.product_id} is no longer available")
            unit_price = Decimal(product.unit_price)
            total += unit_price * item.quantity
            order_items.append(
                OrderItem(product_id=product.id, quantity=item.quantity, unit_price=unit_price)
            )

        now = datetime.now(timezone.utc)
        online = payment_method == PAYMENT_ONLINE
        order = Order(
            principal_id=principal_id,
            items=order_items,
            total_amount=total,
            payment_method=payment_method,
            payment_id=payment_reference or None,
            status=ORDER_PAID if online else ORDER_PENDING,
            created_at=now,
            paid_at=now if online else None,
        )
        self.db.add(order)
        try:
            await self.db.flush()
            cart.checked_out_order_id = order.id
            cart.updated_at = now
            await self.db.commit()
        except StaleDataError as exc:
            await self.db.rollback()
            logger.warning("Concurrent checkout rejected for principal %s", principal_id)
            raise ConflictError("Cart changed during checkout, please retry") from exc
        except IntegrityError as exc:
            await self.db.rollback()
            raise ConflictError("Payment reference is already used by another order") from exc

        logger.info(
            "Order %d placed by %s: %d line(s), total %s, %s",
            order.id,
            principal_id,
            len(order_items),
            total,
            payment_method,
        )
        await discard_cart(self.db, cart)
        return await self.get_order(order.id)

    async def _lock_order(self, order_id: int, principal: Principal) -> Order:
        result = await self.db.execute(
            select(Order).where(Order.id == order_id).with_for_update()
        )
        order = result.scalar_one_or_none()
        if order is None:
            raise NotFoundError("Order not found")
        if order.principal_id != principal.id and not principal.is_admin:
            raise ForbiddenError("Unauthorized action")
        return order

    async def create_payment_intent(
        self, amount: Decimal | int, currency: str | None = None
    ) -> GatewayOrder:
        """Create an unbound gateway order for client-side capture.

        *amount* is in major units; it is converted to minor units here.
        Gateway failures propagate as ``PaymentGatewayError``. The result is
        not tied to any order and cannot settle one.
        """
        if self.gateway is None:
            raise RuntimeError("CheckoutEngine was built without a payment gateway")
        minor = to_minor_units(amount)
        return await self.gateway.create_order(
            minor, currency or settings.PAYMENT_CURRENCY, new_receipt_id()
        )

    async def create_order_payment_intent(
        self, order_id: int, principal: Principal, currency: str | None = None
    ) -> GatewayOrder:
        """Charge a pending order's own total and bind the gateway order to it."""
        if self.gateway is None:
            raise RuntimeError("CheckoutEngine was built without a payment gateway")
        order = await self._lock_order(order_id, principal)
        if order.status != ORDER_PENDING:
            await self.db.rollback()
            raise ConflictError("Order is not awaiting payment")

        try:
            gateway_order = await self.gateway.create_order(
                to_minor_units(order.total_amount),
                currency or settings.PAYMENT_CURRENCY,
                f"order_{order.id}",
            )
        except AppError:
            await self.db.rollback()
            raise

        # A fresh intent replaces any earlier, never-captured one
        order.gateway_order_id = gateway_order.id
        await self.db.commit()
        logger.info("Gateway order %s bound to order %d", gateway_order.id, order.id)
        return gateway_order

    async def record_verified_payment(
        self,
        order_id: int,
        principal: Principal,
        gateway_order_id: str,
        gateway_payment_id: str,
    ) -> Order:
        """Attach an already-verified payment to the order it was created for.

        Only a pending order whose bound gateway order matches can be
        settled. Replaying the payment that already settled it is a no-op.
        """
        order = await self._lock_order(order_id, principal)

        if order.status != ORDER_PENDING:
            await self.db.rollback()
            if (
                order.payment_id == gateway_payment_id
                and order.gateway_order_id == gateway_order_id
            ):
                return await self.get_order(order.id)
            raise ConflictError("Order is not awaiting payment")

        if order.gateway_order_id is None or order.gateway_order_id != gateway_order_id:
            await self.db.rollback()
            logger.warning(
                "Gateway order %s does not belong to order %d", gateway_order_id, order.id
            )
            raise ValidationError("Payment does not belong to this order")

        order.payment_id = gateway_payment_id
        order.payment_method = PAYMENT_ONLINE
        order.status = ORDER_PAID
        order.paid_at = datetime.now(timezone.utc)
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise ConflictError("Payment is already recorded against another order") from exc
        logger.info("Payment %s recorded against order %d", gateway_payment_id, order.id)
        return await self.get_order(order.id)
