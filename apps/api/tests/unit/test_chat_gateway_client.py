import json
from datetime import timedelta

import httpx
import pytest

from heed_orders.config import settings
from heed_orders.integrations.chat_gateway_client import ChatGatewayClient, get_notification_bridge
from heed_orders.integrations.errors import (
    GatewayRejectedError,
    GatewayTimeoutError,
    GatewayUnavailableError,
)
from heed_orders.services.notification_bridge import outbox


def _client(handler, max_retries: int = 2) -> ChatGatewayClient:
    return ChatGatewayClient(
        base_url="http://chat.test/",
        timeout_s=1.0,
        max_retries=max_retries,
        backoff_s=0,
        transport=httpx.MockTransport(handler),
    )


def test_send_chat_message_posts_payload_and_returns_ids():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(201, json={"message_id": "m-1", "chat_id": "c-1"})

    sent = _client(handler).send_chat_message(
        "buyer", "seller", "hi", {"type": "order-update"}, ttl=timedelta(hours=24)
    )

    assert (sent.message_id, sent.chat_id) == ("m-1", "c-1")
    assert str(seen[0].url) == "http://chat.test/api/v1/messages"
    body = json.loads(seen[0].content)
    assert body["ttl_seconds"] == 86400
    assert body["payload"] == {"type": "order-update"}


def test_retries_5xx_then_succeeds():
    responses = [httpx.Response(503), httpx.Response(502), httpx.Response(204)]

    def handler(request: httpx.Request) -> httpx.Response:
        return responses.pop(0)

    _client(handler).send_notification("u", "t", "b", {})

    assert responses == []


def test_gives_up_after_max_retries():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        raise httpx.ReadTimeout("slow", request=request)

    with pytest.raises(GatewayTimeoutError):
        _client(handler, max_retries=1).send_notification("u", "t", "b", {})
    assert len(calls) == 2


def test_transport_errors_are_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(GatewayUnavailableError) as exc:
        _client(handler, max_retries=0).send_notification("u", "t", "b", {})
    assert exc.value.retryable is True


def test_4xx_is_not_retried():
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(422, json={"detail": "bad"})

    with pytest.raises(GatewayRejectedError) as exc:
        _client(handler).send_notification("u", "t", "b", {})
    assert len(calls) == 1
    assert exc.value.status_code == 422


def test_message_response_without_ids_is_rejected():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"ok": True})

    with pytest.raises(GatewayRejectedError):
        _client(handler).send_chat_message("a", "b", "c", {})


def test_bridge_falls_back_to_outbox_without_gateway_url(monkeypatch):
    monkeypatch.setattr(settings, "chat_gateway_base_url", "")
    assert get_notification_bridge() is outbox

    monkeypatch.setattr(settings, "chat_gateway_base_url", "http://chat.test")
    assert isinstance(get_notification_bridge(), ChatGatewayClient)
