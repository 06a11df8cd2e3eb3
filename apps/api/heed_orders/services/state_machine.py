from heed_orders.errors import InvalidTransition
from heed_orders.models.order import OrderStatus

ORDER_STATE_TRANSITIONS: dict[OrderStatus, set[OrderStatus]] = {
    OrderStatus.PENDING: {OrderStatus.CONFIRMED, OrderStatus.CANCELLED},
    OrderStatus.CONFIRMED: {OrderStatus.SHIPPING_INITIATED, OrderStatus.CANCELLED},
    OrderStatus.PROCESSING: {OrderStatus.SHIPPING_INITIATED, OrderStatus.CANCELLED},
    OrderStatus.SHIPPING_INITIATED: {OrderStatus.SHIPPED},
    OrderStatus.SHIPPED: {OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED},
    OrderStatus.OUT_FOR_DELIVERY: {OrderStatus.DELIVERED},
    OrderStatus.DELIVERED: {OrderStatus.DISPUTED, OrderStatus.REFUND_REQUESTED},
    OrderStatus.DISPUTED: {OrderStatus.REFUNDED},
    OrderStatus.REFUND_REQUESTED: {OrderStatus.REFUNDED},
    OrderStatus.CANCELLED: set(),
    OrderStatus.REFUNDED: set(),
}

TERMINAL: frozenset[OrderStatus] = frozenset(
    status for status, allowed in ORDER_STATE_TRANSITIONS.items() if not allowed
)

CANCELLABLE: frozenset[OrderStatus] = frozenset(
    {OrderStatus.PENDING, OrderStatus.CONFIRMED, OrderStatus.PROCESSING}
)

CONFIRMABLE_DELIVERY: frozenset[OrderStatus] = frozenset(
    {OrderStatus.DELIVERED, OrderStatus.OUT_FOR_DELIVERY}
)

# Targets only the buyer may request; the seller status endpoint refuses them.
BUYER_ONLY_TARGETS: frozenset[OrderStatus] = frozenset(
    {OrderStatus.DISPUTED, OrderStatus.REFUND_REQUESTED}
)


def is_allowed_transition(current: OrderStatus, next_status: OrderStatus) -> bool:
    return next_status in ORDER_STATE_TRANSITIONS.get(current, set())


def ensure_valid_transition(current: OrderStatus, next_status: OrderStatus) -> None:
    if not is_allowed_transition(current, next_status):
        raise InvalidTransition(current.value, next_status.value)
