"""Chat and notification copy for order events.

Everything here is pure: functions take an order (or plain values) and return
the effects to emit. Delivery is the dispatcher's job.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from heed_orders.models.order import Order, OrderStatus
from heed_orders.services.notification_bridge import ChatMessage, Notification, SideEffect
from heed_orders.services.time_windows import DISPUTE_REMINDER_TTL, dispute_deadline

ORDER_STATUS_LABELS: dict[OrderStatus, str] = {
    OrderStatus.PENDING: "Pending",
    OrderStatus.CONFIRMED: "Confirmed",
    OrderStatus.PROCESSING: "Processing",
    OrderStatus.SHIPPING_INITIATED: "Shipping Initiated",
    OrderStatus.SHIPPED: "Shipped",
    OrderStatus.OUT_FOR_DELIVERY: "Out for Delivery",
    OrderStatus.DELIVERED: "Delivered",
    OrderStatus.CANCELLED: "Cancelled",
    OrderStatus.DISPUTED: "Disputed",
    OrderStatus.REFUND_REQUESTED: "Refund Requested",
    OrderStatus.REFUNDED: "Refunded",
}

# status -> (title, body for buyer, body for seller)
_NOTIFICATION_COPY: dict[OrderStatus, tuple[str, str, str]] = {
    OrderStatus.PENDING: (
        "Order Placed",
        "Your order #{number} has been placed successfully",
        "New order #{number} received",
    ),
    OrderStatus.CONFIRMED: (
        "Order Confirmed",
        "Order #{number} has been confirmed by the seller",
        "Order #{number} is confirmed",
    ),
    OrderStatus.PROCESSING: (
        "Order Processing",
        "Order #{number} is being prepared",
        "Order #{number} is being prepared",
    ),
    OrderStatus.SHIPPING_INITIATED: (
        "Shipping Started",
        "Shipping has started for order #{number}",
        "Shipping has started for order #{number}",
    ),
    OrderStatus.SHIPPED: (
        "Order Shipped",
        "Order #{number} has been shipped",
        "Order #{number} has been shipped",
    ),
    OrderStatus.OUT_FOR_DELIVERY: (
        "Out for Delivery",
        "Order #{number} is out for delivery",
        "Order #{number} is out for delivery",
    ),
    OrderStatus.DELIVERED: (
        "Order Delivered",
        "Order #{number} has been delivered",
        "Order #{number} has been delivered",
    ),
    OrderStatus.CANCELLED: (
        "Order Cancelled",
        "Order #{number} has been cancelled",
        "Order #{number} has been cancelled by the buyer",
    ),
    OrderStatus.DISPUTED: (
        "Order Disputed",
        "Your dispute for order #{number} has been opened",
        "The buyer opened a dispute on order #{number}",
    ),
    OrderStatus.REFUND_REQUESTED: (
        "Refund Requested",
        "Refund requested for order #{number}",
        "Refund requested for order #{number}",
    ),
    OrderStatus.REFUNDED: (
        "Refund Processed",
        "Refund processed for order #{number}",
        "Refund processed for order #{number}",
    ),
}


def item_label(items: list[dict[str, Any]]) -> str:
    if not items:
        return "your items"
    first = str(items[0].get("title") or "item")
    if len(items) == 1:
        return first
    return f"{first} +{len(items) - 1} more"


def format_estimated_delivery(value: datetime) -> str:
    return value.strftime("%a, %d %b %Y")


def format_deadline(value: datetime) -> str:
    return value.strftime("%d %b %Y, %H:%M UTC")


def render_status_message(
    order: Order,
    new_status: OrderStatus,
    *,
    actor_id: str | None = None,
    seller_name: str | None = None,
) -> str:
    number = order.order_number
    label = item_label(order.items)
    seller = seller_name or "the seller"

    if new_status == OrderStatus.CONFIRMED:
        return f"✅ Great news! {seller} confirmed your order #{number} ({label})."
    if new_status == OrderStatus.PROCESSING:
        return f"🔧 Your order #{number} ({label}) is being prepared for shipping."
    if new_status == OrderStatus.SHIPPING_INITIATED:
        return (
            f"📦 {seller} has started shipping your order #{number} ({label}). "
            "The order can no longer be cancelled."
        )
    if new_status == OrderStatus.SHIPPED:
        lines = [f"🚚 Your order #{number} ({label}) has been shipped!"]
        if order.tracking_number:
            carrier = f" via {order.shipping_carrier}" if order.shipping_carrier else ""
            lines.append(f"Tracking: {order.tracking_number}{carrier}")
        if order.tracking_link:
            lines.append(f"📎 Track here: {order.tracking_link}")
        if order.estimated_delivery:
            lines.append(
                f"Estimated delivery: {format_estimated_delivery(order.estimated_delivery)}"
            )
        return "\n".join(lines)
    if new_status == OrderStatus.OUT_FOR_DELIVERY:
        return (
            f"📍 Your order #{number} ({label}) is out for delivery! Please confirm once you "
            "receive it; otherwise it will be confirmed automatically after 48 hours."
        )
    if new_status == OrderStatus.DELIVERED:
        return f"🎉 Your order #{number} ({label}) has been delivered! Thank you for shopping with us."
    if new_status == OrderStatus.CANCELLED:
        by_buyer = actor_id is not None and actor_id == order.buyer_id
        who = "the buyer" if by_buyer else seller
        reason = f" Reason: {order.cancellation_reason}" if order.cancellation_reason else ""
        return f"❌ Order #{number} ({label}) has been cancelled by {who}.{reason}"
    if new_status == OrderStatus.DISPUTED:
        reason = f": {order.dispute_reason}" if order.dispute_reason else "."
        return f"⚠️ The buyer opened a dispute on order #{number} ({label}){reason}"
    return f"📋 Order #{number} status updated to {ORDER_STATUS_LABELS[new_status]}."


def status_message_payload(
    order: Order, new_status: OrderStatus, previous_status: OrderStatus
) -> dict[str, Any]:
    message_type = (
        "delivery-confirmation" if new_status == OrderStatus.OUT_FOR_DELIVERY else "order-update"
    )
    if new_status == OrderStatus.DISPUTED:
        message_type = "dispute"
    return {
        "type": message_type,
        "order_id": str(order.id),
        "order_number": order.order_number,
        "status": new_status.value,
        "previous_status": previous_status.value,
        "tracking_number": order.tracking_number,
        "tracking_link": order.tracking_link,
        "estimated_delivery": (
            order.estimated_delivery.isoformat() if order.estimated_delivery else None
        ),
    }


def status_notification(order: Order, new_status: OrderStatus, recipient_id: str) -> Notification:
    title, buyer_body, seller_body = _NOTIFICATION_COPY[new_status]
    template = buyer_body if recipient_id == order.buyer_id else seller_body
    return Notification(
        user_id=recipient_id,
        title=title,
        body=template.format(number=order.order_number),
        metadata={
            "type": "order_status",
            "order_id": str(order.id),
            "order_number": order.order_number,
            "status": new_status.value,
        },
    )


def dispute_reminder(order: Order) -> ChatMessage:
    """Self-expiring nudge sent when an order reaches ``delivered``."""
    if order.delivered_at is None:
        raise ValueError("dispute reminder requires a delivered order")
    deadline = dispute_deadline(order.delivered_at)
    return ChatMessage(
        from_user=order.seller_id,
        to_user=order.buyer_id,
        content=(
            f"⏰ Something wrong with order #{order.order_number} ({item_label(order.items)})? "
            f"You can open a dispute until {format_deadline(deadline)}."
        ),
        payload={
            "type": "dispute-reminder",
            "order_id": str(order.id),
            "order_number": order.order_number,
            "dispute_deadline": deadline.isoformat(),
        },
        ttl=DISPUTE_REMINDER_TTL,
    )


def transition_effects(
    order: Order,
    previous_status: OrderStatus,
    actor_id: str,
    *,
    system_actor_id: str,
    seller_name: str | None = None,
    extra_payload: dict[str, Any] | None = None,
) -> list[SideEffect]:
    """Chat message + counter-party notification for one committed transition."""
    new_status = order.status
    if actor_id == order.buyer_id:
        sender, recipients = order.buyer_id, [order.seller_id]
    elif actor_id == system_actor_id:
        sender, recipients = order.seller_id, [order.buyer_id, order.seller_id]
    else:
        sender, recipients = order.seller_id, [order.buyer_id]
    receiver = order.seller_id if sender == order.buyer_id else order.buyer_id

    payload = status_message_payload(order, new_status, previous_status)
    if actor_id == system_actor_id:
        payload["auto_confirmed"] = True
    if extra_payload:
        payload.update(extra_payload)
    effects: list[SideEffect] = [
        ChatMessage(
            from_user=sender,
            to_user=receiver,
            content=render_status_message(
                order, new_status, actor_id=actor_id, seller_name=seller_name
            ),
            payload=payload,
        )
    ]
    effects.extend(status_notification(order, new_status, user_id) for user_id in recipients)
    if new_status == OrderStatus.DELIVERED and previous_status != OrderStatus.DELIVERED:
        effects.append(dispute_reminder(order))
    return effects


def purchase_message(
    order: Order, *, product_title: str, quantity: int, remaining_stock: int | None
) -> ChatMessage:
    stock_suffix = (
        f" | Stock left: {max(0, remaining_stock)}" if remaining_stock is not None else ""
    )
    item = order.items[0]
    return ChatMessage(
        from_user=order.buyer_id,
        to_user=order.seller_id,
        content=f"Order placed: {quantity} x {product_title}{stock_suffix}",
        payload={
            "type": "product",
            "order_id": str(order.id),
            "order_number": order.order_number,
            "product": {
                "post_id": item["post_id"],
                "title": product_title,
                "price": item["price"],
                "image": item["image"],
            },
        },
    )


def creation_notifications(order: Order) -> list[SideEffect]:
    return [
        status_notification(order, OrderStatus.PENDING, order.seller_id),
        status_notification(order, OrderStatus.PENDING, order.buyer_id),
    ]


def not_received_escalation(order: Order) -> list[SideEffect]:
    label = item_label(order.items)
    return [
        ChatMessage(
            from_user=order.buyer_id,
            to_user=order.seller_id,
            content=(
                f"🚨 The buyer reports that order #{order.order_number} ({label}) has not been "
                "received. Please get in touch to resolve it."
            ),
            payload={
                "type": "delivery-confirmation",
                "order_id": str(order.id),
                "order_number": order.order_number,
                "status": order.status.value,
                "delivery_confirmed": False,
            },
        ),
        Notification(
            user_id=order.seller_id,
            title="Delivery Issue Reported",
            body=f"The buyer has not received order #{order.order_number}",
            metadata={
                "type": "order_delivery_issue",
                "order_id": str(order.id),
                "order_number": order.order_number,
            },
        ),
    ]


def low_stock_alert(
    *,
    seller_id: str,
    post_id: str,
    title: str,
    size: str | None,
    unit_remaining: int,
    aggregate_remaining: int,
    threshold: int,
) -> Notification | None:
    """Alert for the seller once stock runs out or drops to the threshold."""
    metadata: dict[str, Any] = {"type": "system", "post_id": post_id}
    if aggregate_remaining == 0:
        scope = " (all sizes)" if size else ""
        return Notification(
            user_id=seller_id,
            title="Inventory Empty",
            body=f'"{title}" is now out of stock{scope}.',
            metadata={**metadata, "quantity_available": 0},
        )
    if size and unit_remaining == 0:
        return Notification(
            user_id=seller_id,
            title="Size Out of Stock",
            body=f'"{title}" size "{size}" is now out of stock.',
            metadata={**metadata, "size": size, "quantity_available": 0},
        )
    if unit_remaining <= threshold:
        size_part = f' size "{size}"' if size else ""
        extra = {"size": size} if size else {}
        return Notification(
            user_id=seller_id,
            title="Low Inventory Alert",
            body=f'"{title}"{size_part} is running low ({unit_remaining} left).',
            metadata={**metadata, **extra, "quantity_available": unit_remaining},
        )
    return None
