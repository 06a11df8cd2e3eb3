from dataclasses import dataclass


@dataclass
class GatewayError(Exception):
    service: str
    code: str
    message: str
    retryable: bool = False
    status_code: int | None = None

    def __str__(self) -> str:
        return f"{self.service}:{self.code}:{self.message}"


class GatewayTimeoutError(GatewayError):
    def __init__(self, service: str, message: str = "Gateway timed out") -> None:
        super().__init__(service=service, code="TIMEOUT", message=message, retryable=True)


class GatewayUnavailableError(GatewayError):
    def __init__(
        self, service: str, message: str = "Gateway unavailable", status_code: int | None = None
    ) -> None:
        super().__init__(
            service=service,
            code="UNAVAILABLE",
            message=message,
            retryable=True,
            status_code=status_code,
        )


class GatewayRejectedError(GatewayError):
    """The gateway answered, but not with something we can use. Never retried."""

    def __init__(
        self, service: str, message: str = "Unexpected gateway response", status_code: int | None = None
    ) -> None:
        super().__init__(
            service=service,
            code="REJECTED",
            message=message,
            retryable=False,
            status_code=status_code,
        )
