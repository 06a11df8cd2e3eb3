"""Domain failures raised by the order services.

Every failure carries a stable ``kind`` so callers can branch on it without
parsing messages. The HTTP layer maps kinds to status codes in one place.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class OrderError(Exception):
    kind: str
    message: str
    details: dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.kind}:{self.message}"

    def to_payload(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message, **self.details}


class ValidationFailed(OrderError):
    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(kind="Validation", message=message, details=details)


class NotFound(OrderError):
    def __init__(self, message: str = "Order not found") -> None:
        super().__init__(kind="NotFound", message=message)


class AuthorizationFailed(OrderError):
    def __init__(self, message: str = "Not authorized for this order") -> None:
        super().__init__(kind="Authorization", message=message)


class InvalidTransition(OrderError):
    def __init__(self, current: str, target: str) -> None:
        super().__init__(
            kind="InvalidTransition",
            message=f"Cannot transition from {current} to {target}",
            details={"current_status": current, "target_status": target},
        )


class WindowExpired(OrderError):
    def __init__(self, message: str, *, deadline: str | None = None) -> None:
        details = {"deadline": deadline} if deadline else {}
        super().__init__(kind="WindowExpired", message=message, details=details)


class OutOfStock(OrderError):
    def __init__(self, message: str = "This product is out of stock") -> None:
        super().__init__(kind="OutOfStock", message=message)


class InsufficientStock(OrderError):
    def __init__(self, message: str, *, available: int) -> None:
        super().__init__(
            kind="InsufficientStock",
            message=message,
            details={"available_quantity": available},
        )

    @property
    def available(self) -> int:
        return int(self.details["available_quantity"])


class Conflict(OrderError):
    def __init__(self, message: str = "Order was modified concurrently; reload and retry") -> None:
        super().__init__(kind="Conflict", message=message)
