"""
Cart model — one cart per principal, with ordered product lines.

``version_id`` is an optimistic-lock counter: every cart mutation touches
``updated_at`` so concurrent checkouts of the same cart cannot both win.
"""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from backoffice.db.base import Base


class Cart(Base):
    __tablename__ = "carts"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    principal_id: str = Column(String(36), unique=True, nullable=False, index=True)  # type: ignore[assignment]
    # Set in the same transaction that creates the order; a claimed cart is
    # dead and only waits for deletion.
    checked_out_order_id: int | None = Column(Integer, nullable=True)  # type: ignore[assignment]
    version_id: int = Column(Integer, nullable=False, default=1)  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    items = relationship(
        "CartItem",
        back_populates="cart",
        cascade="all, delete-orphan",
        order_by="CartItem.id",
        lazy="selectin",
    )

    __mapper_args__ = {"version_id_col": version_id}


class CartItem(Base):
    __tablename__ = "cart_items"
    __table_args__ = (UniqueConstraint("cart_id", "product_id", name="uq_cart_product"),)

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    cart_id: int = Column(Integer, ForeignKey("carts.id", ondelete="CASCADE"), nullable=False)  # type: ignore[assignment]
    product_id: int = Column(Integer, ForeignKey("products.id"), nullable=False)  # type: ignore[assignment]
    quantity: int = Column(Integer, nullable=False)  # type: ignore[assignment]

    cart = relationship("Cart", back_populates="items")
    product = relationship("Product", lazy="selectin")
