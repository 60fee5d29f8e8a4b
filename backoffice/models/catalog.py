"""
Product model — the catalog that carts and orders price against.
"""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal

from sqlalchemy import Boolean, Column, DateTime, Integer, Numeric, String

from backoffice.db.base import Base


class Product(Base):
    __tablename__ = "products"

    id: int = Column(Integer, primary_key=True, index=True)  # type: ignore[assignment]
    name: str = Column(String(200), nullable=False)  # type: ignore[assignment]
    description: str | None = Column(String(2000), nullable=True)  # type: ignore[assignment]
    category: str | None = Column(String(100), nullable=True, index=True)  # type: ignore[assignment]
    price: Decimal = Column(Numeric(12, 2), nullable=False)  # type: ignore[assignment]
    discount_price: Decimal | None = Column(Numeric(12, 2), nullable=True)  # type: ignore[assignment]
    stock: int = Column(Integer, nullable=False, default=0)  # type: ignore[assignment]
    image_url: str | None = Column(String(500), nullable=True)  # type: ignore[assignment]
    is_active: bool = Column(Boolean, default=True, server_default="true")  # type: ignore[assignment]
    created_at: datetime = Column(  # type: ignore[assignment]
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    @property
    def unit_price(self) -> Decimal:
        """Authoritative selling price: the discount price when one is set."""
        return self.discount_price if self.discount_price is not None else self.price
