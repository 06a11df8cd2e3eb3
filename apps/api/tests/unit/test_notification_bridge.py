from datetime import timedelta

from heed_orders.observability import metrics_store
from heed_orders.services.notification_bridge import (
    ChatMessage,
    InMemoryNotificationBridge,
    Notification,
    SideEffectDispatcher,
)

from conftest import T0


class _FlakyBridge(InMemoryNotificationBridge):
    def send_notification(self, user_id, title, body, metadata):
        if user_id == "broken":
            raise RuntimeError("push provider down")
        super().send_notification(user_id, title, body, metadata)


def test_messages_with_ttl_disappear_after_expiry():
    bridge = InMemoryNotificationBridge(clock=lambda: T0)
    sent = bridge.send_chat_message("a", "b", "hi", {"type": "x"}, ttl=timedelta(hours=24))
    bridge.send_chat_message("b", "a", "hello", {"type": "y"})

    assert len(bridge.visible_messages(sent.chat_id, T0 + timedelta(hours=23))) == 2
    assert [m.content for m in bridge.visible_messages(sent.chat_id, T0 + timedelta(hours=24))] == [
        "hello"
    ]
    assert bridge.purge_expired(T0 + timedelta(days=2)) == 1


def test_same_pair_shares_one_conversation():
    bridge = InMemoryNotificationBridge()

    first = bridge.send_chat_message("a", "b", "1", {})
    second = bridge.send_chat_message("b", "a", "2", {})

    assert first.chat_id == second.chat_id


def test_dispatcher_isolates_failures():
    bridge = _FlakyBridge()
    dispatcher = SideEffectDispatcher(bridge)

    dispatcher.dispatch(
        [
            Notification("broken", "t", "b", {}),
            Notification("fine", "t", "b", {}),
            ChatMessage("a", "b", "still sent", {}),
        ],
        order_id="o-1",
    )

    assert [n.user_id for n in bridge.notifications] == ["fine"]
    assert [m.content for m in bridge.all_messages()] == ["still sent"]
    assert metrics_store.snapshot().counters["side_effect_failures_total"] == 1


def test_dispatcher_defers_delivery_when_asked():
    bridge = InMemoryNotificationBridge()
    queued = []
    dispatcher = SideEffectDispatcher(bridge, defer=queued.append)

    dispatcher.dispatch([Notification("u", "t", "b", {})])

    assert bridge.notifications == []
    queued[0]()
    assert len(bridge.notifications) == 1
