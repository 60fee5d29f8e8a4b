"""Pydantic schemas for products and carts."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field, field_validator


# ── Products ────────────────────────────────────────────────────────
class ProductCreate(BaseModel):
    name: str
    description: str | None = None
    category: str | None = None
    price: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    discount_price: Decimal | None = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    stock: int = Field(default=0, ge=0)
    image_url: str | None = None

    @field_validator("name")
    @classmethod
    def _name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name must not be empty")
        return v


class ProductUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    category: str | None = None
    price: Decimal | None = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    discount_price: Decimal | None = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    stock: int | None = Field(default=None, ge=0)
    image_url: str | None = None
    is_active: bool | None = None


class ProductRead(BaseModel):
    id: int
    name: str
    description: str | None
    category: str | None
    price: float
    discount_price: float | None
    stock: int
    image_url: str | None
    is_active: bool

    model_config = {"from_attributes": True}


# ── Cart ────────────────────────────────────────────────────────────
class CartAdd(BaseModel):
    user_id: str
    product_id: int
    quantity: int = Field(ge=1)


class CartUpdate(BaseModel):
    user_id: str
    product_id: int
    quantity: int = Field(ge=1)


class CartRemove(BaseModel):
    user_id: str
    product_id: int


class CartItemRead(BaseModel):
    product_id: int
    quantity: int
    product: ProductRead

    model_config = {"from_attributes": True}


class CartRead(BaseModel):
    user_id: str
    items: list[CartItemRead] = []


class CartResponse(BaseModel):
    success: bool = True
    message: str | None = None
    cart: CartRead
