from heed_orders.integrations.errors import (
    GatewayError,
    GatewayRejectedError,
    GatewayTimeoutError,
    GatewayUnavailableError,
)

__all__ = [
    "GatewayError",
    "GatewayTimeoutError",
    "GatewayUnavailableError",
    "GatewayRejectedError",
]
