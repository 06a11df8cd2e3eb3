from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Callable, Protocol, Union

from heed_orders.observability import log_event, metrics_store
from heed_orders.services.time_windows import now_utc


@dataclass(frozen=True)
class ChatMessage:
    from_user: str
    to_user: str
    content: str
    payload: dict[str, Any]
    ttl: timedelta | None = None


@dataclass(frozen=True)
class Notification:
    user_id: str
    title: str
    body: str
    metadata: dict[str, Any]


SideEffect = Union[ChatMessage, Notification]


@dataclass(frozen=True)
class SentMessage:
    message_id: str
    chat_id: str


class NotificationBridge(Protocol):
    def send_chat_message(
        self,
        from_user: str,
        to_user: str,
        content: str,
        structured_payload: dict[str, Any],
        ttl: timedelta | None = None,
    ) -> SentMessage: ...

    def send_notification(
        self, user_id: str, title: str, body: str, metadata: dict[str, Any]
    ) -> None: ...


@dataclass
class StoredMessage:
    id: str
    chat_id: str
    sender: str
    recipient: str
    content: str
    payload: dict[str, Any]
    created_at: datetime
    expires_at: datetime | None = None

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now >= self.expires_at


@dataclass
class StoredNotification:
    user_id: str
    title: str
    body: str
    metadata: dict[str, Any]
    created_at: datetime


@dataclass
class InMemoryNotificationBridge:
    """Process-local conversations and notifications.

    Used when no chat gateway is configured, and by the test-suite to assert
    on what the order services emitted.
    """

    conversations: dict[frozenset[str], str] = field(default_factory=dict)
    messages: dict[str, list[StoredMessage]] = field(default_factory=lambda: defaultdict(list))
    notifications: list[StoredNotification] = field(default_factory=list)
    clock: Callable[[], datetime] = now_utc

    def conversation_between(self, first: str, second: str) -> str:
        key = frozenset({first, second})
        chat_id = self.conversations.get(key)
        if chat_id is None:
            chat_id = f"chat_{uuid.uuid4().hex}"
            self.conversations[key] = chat_id
        return chat_id

    def send_chat_message(
        self,
        from_user: str,
        to_user: str,
        content: str,
        structured_payload: dict[str, Any],
        ttl: timedelta | None = None,
    ) -> SentMessage:
        chat_id = self.conversation_between(from_user, to_user)
        created_at = self.clock()
        message = StoredMessage(
            id=f"msg_{uuid.uuid4().hex}",
            chat_id=chat_id,
            sender=from_user,
            recipient=to_user,
            content=content,
            payload=dict(structured_payload),
            created_at=created_at,
            expires_at=created_at + ttl if ttl is not None else None,
        )
        self.messages[chat_id].append(message)
        return SentMessage(message_id=message.id, chat_id=chat_id)

    def send_notification(
        self, user_id: str, title: str, body: str, metadata: dict[str, Any]
    ) -> None:
        self.notifications.append(
            StoredNotification(
                user_id=user_id,
                title=title,
                body=body,
                metadata=dict(metadata),
                created_at=self.clock(),
            )
        )

    def visible_messages(self, chat_id: str, now: datetime | None = None) -> list[StoredMessage]:
        moment = now or self.clock()
        return [message for message in self.messages.get(chat_id, []) if not message.is_expired(moment)]

    def purge_expired(self, now: datetime | None = None) -> int:
        moment = now or self.clock()
        purged = 0
        for chat_id, history in self.messages.items():
            kept = [message for message in history if not message.is_expired(moment)]
            purged += len(history) - len(kept)
            self.messages[chat_id] = kept
        return purged

    def all_messages(self) -> list[StoredMessage]:
        return [message for history in self.messages.values() for message in history]

    def notifications_for(self, user_id: str) -> list[StoredNotification]:
        return [item for item in self.notifications if item.user_id == user_id]

    def reset(self) -> None:
        self.conversations.clear()
        self.messages.clear()
        self.notifications.clear()


outbox = InMemoryNotificationBridge()


def reset_outbox() -> None:
    outbox.reset()


class SideEffectDispatcher:
    """Deliver chat messages and notifications after an order commit.

    Delivery is best-effort: every failure is logged and counted, never
    raised back into the operation that produced the effects. ``defer`` lets
    the HTTP layer push delivery past the response (``BackgroundTasks.add_task``).
    """

    def __init__(
        self,
        bridge: NotificationBridge,
        defer: Callable[[Callable[[], None]], Any] | None = None,
    ) -> None:
        self.bridge = bridge
        self._defer = defer

    def dispatch(
        self,
        effects: list[SideEffect],
        *,
        order_id: str | None = None,
        order_number: str | None = None,
    ) -> None:
        if not effects:
            return
        pending = list(effects)
        self.submit(lambda: self._deliver_all(pending, order_id, order_number))

    def submit(self, task: Callable[[], None]) -> None:
        """Run ``task`` now, or hand it to ``defer`` when one is configured."""
        if self._defer is not None:
            self._defer(task)
            return
        task()

    def send_now(
        self,
        message: ChatMessage,
        *,
        order_id: str | None = None,
        order_number: str | None = None,
    ) -> SentMessage | None:
        try:
            return self._send_chat(message)
        except Exception:
            self._record_failure("chat_message", order_id, order_number)
            return None

    def _deliver_all(
        self, effects: list[SideEffect], order_id: str | None, order_number: str | None
    ) -> None:
        for effect in effects:
            try:
                if isinstance(effect, ChatMessage):
                    self._send_chat(effect)
                else:
                    self.bridge.send_notification(
                        effect.user_id, effect.title, effect.body, effect.metadata
                    )
            except Exception:
                kind = "chat_message" if isinstance(effect, ChatMessage) else "notification"
                self._record_failure(kind, order_id, order_number)

    def _send_chat(self, message: ChatMessage) -> SentMessage:
        return self.bridge.send_chat_message(
            message.from_user,
            message.to_user,
            message.content,
            message.payload,
            ttl=message.ttl,
        )

    def _record_failure(self, kind: str, order_id: str | None, order_number: str | None) -> None:
        metrics_store.increment("side_effect_failures_total")
        log_event(
            f"side_effect_failed:{kind}",
            order_id=order_id,
            order_number=order_number,
            level=logging.WARNING,
            exc_info=True,
        )
