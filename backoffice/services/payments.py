"""
Payment gateway client (Razorpay orders API) and callback signature
verification.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import time
from abc import ABC, abstractmethod
from decimal import ROUND_HALF_UP, Decimal

import httpx

from backoffice.core.config import settings
from backoffice.core.exceptions import PaymentGatewayError, ValidationError
from backoffice.schemas.order import GatewayOrder

logger = logging.getLogger(__name__)


def to_minor_units(amount: Decimal | int | float) -> int:
    """Rupees → paise. The gateway only accepts positive integer minor units."""
    minor = (Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    if minor <= 0:
        raise ValidationError("Amount must be positive")
    return int(minor)


class PaymentGateway(ABC):
    @abstractmethod
    async def create_order(self, amount: int, currency: str, receipt: str) -> GatewayOrder:
        """Create a gateway order for *amount* minor units."""


class RazorpayGateway(PaymentGateway):
    def __init__(self, key_id: str, key_secret: str, base_url: str, timeout: float = 10.0):
        self.key_id = key_id
        self.key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def create_order(self, amount: int, currency: str, receipt: str) -> GatewayOrder:
        if not isinstance(amount, int) or isinstance(amount, bool) or amount <= 0:
            raise ValidationError("Amount must be a positive integer in minor units")
        if not self.key_id or not self.key_secret:
            raise PaymentGatewayError("Payment gateway is not configured")
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/orders",
                    json={"amount": amount, "currency": currency, "receipt": receipt},
                    auth=(self.key_id, self.key_secret),
                )
                response.raise_for_status()
                order = GatewayOrder.model_validate(response.json())
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Gateway order creation failed: %s", exc)
            raise PaymentGatewayError() from exc
        logger.info("Gateway order %s created (%d %s)", order.id, order.amount, order.currency)
        return order


def new_receipt_id() -> str:
    return f"receipt_{int(time.time() * 1000)}"


class PaymentVerifier:
    """Checks the gateway's ``order_id|payment_id`` HMAC-SHA256 signature.

    Pure: verifying never touches an order. Linking a verified payment to
    an order is the caller's job.
    """

    def __init__(self, secret: str):
        self._secret = secret.encode("utf-8")

    def expected_signature(self, gateway_order_id: str, gateway_payment_id: str) -> str:
        message = f"{gateway_order_id}|{gateway_payment_id}".encode("utf-8")
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()

    def verify(self, gateway_order_id: str, gateway_payment_id: str, signature: str) -> bool:
        if not self._secret:
            logger.error("Payment verification attempted without a gateway secret")
            return False
        expected = self.expected_signature(gateway_order_id, gateway_payment_id)
        return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))


def build_gateway() -> PaymentGateway:
    return RazorpayGateway(
        settings.RAZORPAY_KEY_ID,
        settings.RAZORPAY_SECRET,
        settings.RAZORPAY_API_URL,
        timeout=settings.EXTERNAL_CALL_TIMEOUT_SECONDS,
    )


def build_verifier() -> PaymentVerifier:
    return PaymentVerifier(settings.RAZORPAY_SECRET)
