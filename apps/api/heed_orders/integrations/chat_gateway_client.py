import time
from datetime import timedelta
from typing import Any

import httpx

from heed_orders.config import settings
from heed_orders.integrations.errors import (
    GatewayError,
    GatewayRejectedError,
    GatewayTimeoutError,
    GatewayUnavailableError,
)
from heed_orders.services.notification_bridge import (
    InMemoryNotificationBridge,
    NotificationBridge,
    SentMessage,
    outbox,
)

SERVICE_NAME = "chat_gateway"


class ChatGatewayClient:
    """Deliver chat messages and notifications through the chat service over HTTP."""

    def __init__(
        self,
        base_url: str,
        timeout_s: float,
        max_retries: int,
        backoff_s: float,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout_s = timeout_s
        self.max_retries = max_retries
        self.backoff_s = backoff_s
        self._transport = transport

    def send_chat_message(
        self,
        from_user: str,
        to_user: str,
        content: str,
        structured_payload: dict[str, Any],
        ttl: timedelta | None = None,
    ) -> SentMessage:
        body: dict[str, Any] = {
            "from_user": from_user,
            "to_user": to_user,
            "content": content,
            "payload": structured_payload,
        }
        if ttl is not None:
            body["ttl_seconds"] = int(ttl.total_seconds())

        data = self._post("/api/v1/messages", body)
        try:
            return SentMessage(message_id=str(data["message_id"]), chat_id=str(data["chat_id"]))
        except (KeyError, TypeError) as err:
            raise GatewayRejectedError(SERVICE_NAME, "Message response missing ids") from err

    def send_notification(
        self, user_id: str, title: str, body: str, metadata: dict[str, Any]
    ) -> None:
        self._post(
            "/api/v1/notifications",
            {"user_id": user_id, "title": title, "body": body, "metadata": metadata},
        )

    def _post(self, path: str, body: dict[str, Any]) -> dict[str, Any]:
        last_error: GatewayError | None = None
        for attempt in range(self.max_retries + 1):
            try:
                with httpx.Client(timeout=self.timeout_s, transport=self._transport) as client:
                    response = client.post(f"{self.base_url}{path}", json=body)

                if response.status_code >= 500:
                    raise GatewayUnavailableError(
                        SERVICE_NAME,
                        f"Chat gateway returned {response.status_code}",
                        status_code=response.status_code,
                    )
                if response.status_code >= 400:
                    raise GatewayRejectedError(
                        SERVICE_NAME,
                        f"Chat gateway returned {response.status_code}",
                        status_code=response.status_code,
                    )
                if not response.content:
                    return {}
                try:
                    data = response.json()
                except ValueError as err:
                    raise GatewayRejectedError(SERVICE_NAME, "Invalid JSON from chat gateway") from err
                if not isinstance(data, dict):
                    raise GatewayRejectedError(SERVICE_NAME, "Chat gateway response must be an object")
                return data
            except httpx.TimeoutException:
                last_error = GatewayTimeoutError(SERVICE_NAME)
            except httpx.TransportError as err:
                last_error = GatewayUnavailableError(SERVICE_NAME, str(err))
            except GatewayUnavailableError as err:
                last_error = err

            if attempt >= self.max_retries:
                break
            time.sleep(self.backoff_s * (2**attempt))

        assert last_error is not None
        raise last_error


def get_notification_bridge() -> NotificationBridge | InMemoryNotificationBridge:
    if not settings.chat_gateway_base_url:
        return outbox
    return ChatGatewayClient(
        base_url=settings.chat_gateway_base_url,
        timeout_s=settings.chat_gateway_timeout_s,
        max_retries=settings.chat_gateway_max_retries,
        backoff_s=settings.chat_gateway_backoff_s,
    )
