"""ORM models; importing this package registers every table on ``Base.metadata``."""

from backoffice.models.account import Account
from backoffice.models.cart import Cart, CartItem
from backoffice.models.catalog import Product
from backoffice.models.order import Order, OrderItem
from backoffice.models.staff import Leave, Resignation, Staff

__all__ = [
    "Account",
    "Cart",
    "CartItem",
    "Leave",
    "Order",
    "OrderItem",
    "Product",
    "Resignation",
    "Staff",
]
