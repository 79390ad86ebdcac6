# Models
from .product import Product
from .order import Order, OrderStatus, PaymentStatus, PaymentMethod
from .order_item import OrderItem

__all__ = [
    "Product",
    "Order",
    "OrderItem",
    "OrderStatus",
    "PaymentStatus",
    "PaymentMethod",
]
