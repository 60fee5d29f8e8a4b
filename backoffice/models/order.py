"""
Order model — immutable record of a checkout, priced from the catalog.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, Numeric, String
from sqlalchemy.orm import relationship

from backoffice.db.base import Base

PAYMENT_COD = "COD"
PAYMENT_ONLINE = "Online"
PAYMENT_METHODS = (PAYMENT_COD, PAYMENT_ONLINE)

ORDER_PENDING = "Pending"
ORDER_PAID = "Paid"
ORDER_SHIPPED = "Shipped"
ORDER_DELIVERED = "Delivered"


class Order(Base):
    __tablename__ = "orders"
    __table_args__ = (Index("ix_order_principal_created", "principal_id", "created_at"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    principal_id: str = Column(String(36), nullable=False)  # type: ignore[assignment]
    total_amount: Decimal = Column(Numeric(12, 2), nullable=False)  # type: ignore[assignment]
    payment_method: str = Column(String(20), nullable=False, default=PAYMENT_COD)  # type: ignore[assignment]
    # A gateway payment (and the gateway order it captures) settles at most one order
    payment_id: str | None = Column(String(100), nullable=True, unique=True)  # type: ignore[assignment]
    gateway_order_id: str | None = Column(String(100), nullable=True, unique=True)  # type: ignore[assignment]
    status: str = Column(String(20), nullable=False, default=ORDER_PENDING)  # type: ignore[assignment]
    # Pending | Paid | Shipped | Delivered
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    paid_at: datetime | None = Column(DateTime(timezone=True), nullable=True)  # type: ignore[assignment]

    items = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
        lazy="selectin",
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    order_id: int = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False)  # type: ignore[assignment]
    product_id: int = Column(Integer, ForeignKey("products.id"), nullable=False)  # type: ignore[assignment]
    quantity: int = Column(Integer, nullable=False)  # type: ignore[assignment]
    unit_price: Decimal = Column(Numeric(12, 2), nullable=False)  # type: ignore[assignment]

    order = relationship("Order", back_populates="items")
    product = relationship("Product", lazy="selectin")
