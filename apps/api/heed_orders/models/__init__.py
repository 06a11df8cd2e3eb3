# Import SQLAlchemy models so they register on Base.metadata
from heed_orders.models.order import (  # noqa: F401
    Order,
    OrderStatus,
    OrderStatusEntry,
    PaymentMethod,
    PaymentStatus,
)
from heed_orders.models.order_counter import OrderCounter  # noqa: F401
from heed_orders.models.product import Product, ProductSizeVariant  # noqa: F401
from heed_orders.models.user_account import UserAccount  # noqa: F401
