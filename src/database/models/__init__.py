# Import all models to ensure they are registered with SQLAlchemy
# This ensures all relationships can be resolved properly

from .order import Order, OrderNote
from .payment import PaymentTransaction

__all__ = [
    "Order",
    "OrderNote",
    "PaymentTransaction",
]
