from fastapi import BackgroundTasks, Depends

from heed_orders.integrations.chat_gateway_client import get_notification_bridge
from heed_orders.services.notification_bridge import NotificationBridge, SideEffectDispatcher


def get_dispatcher(
    background_tasks: BackgroundTasks,
    bridge: NotificationBridge = Depends(get_notification_bridge),
) -> SideEffectDispatcher:
    """Side effects of a request are delivered after the response is sent."""
    return SideEffectDispatcher(bridge, defer=background_tasks.add_task)
