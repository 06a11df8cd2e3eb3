from __future__ import annotations

import logging
import uuid
from contextlib import contextmanager
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, Iterator

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from heed_orders.config import settings
from heed_orders.db.session import SessionLocal
from heed_orders.errors import (
    AuthorizationFailed,
    Conflict,
    InvalidTransition,
    NotFound,
    ValidationFailed,
    WindowExpired,
)
from heed_orders.models.order import (
    Order,
    OrderStatus,
    OrderStatusEntry,
    PaymentMethod,
    PaymentStatus,
)
from heed_orders.models.user_account import UserAccount
from heed_orders.observability import log_event, metrics_store, observe_timing
from heed_orders.services.inventory_service import get_product, reserve_inventory
from heed_orders.services.notification_bridge import ChatMessage, SideEffectDispatcher
from heed_orders.services.order_messages import (
    creation_notifications,
    format_deadline,
    not_received_escalation,
    purchase_message,
    transition_effects,
)
from heed_orders.services.order_numbers import next_order_number
from heed_orders.services.state_machine import (
    BUYER_ONLY_TARGETS,
    CANCELLABLE,
    CONFIRMABLE_DELIVERY,
    ensure_valid_transition,
)
from heed_orders.services.time_windows import (
    auto_confirm_cutoff,
    cancellation_deadline,
    dispute_deadline,
    eligible_for_auto_confirm,
    now_utc,
    within_cancellation_window,
    within_dispute_window,
)

DEFAULT_BUYER_CANCEL_REASON = "Cancelled by buyer"
DEFAULT_SELLER_CANCEL_REASON = "Cancelled by seller"
DEFAULT_DISPUTE_REASON = "Buyer reported a problem with the order"
NOT_RECEIVED_NOTE = "Buyer reported not receiving the order"
AUTO_CONFIRM_NOTE = "Auto-confirmed after 48 hours"


def _resolve_order_uuid(order_id: str | uuid.UUID) -> uuid.UUID:
    if isinstance(order_id, uuid.UUID):
        return order_id
    try:
        return uuid.UUID(str(order_id))
    except ValueError as err:
        raise NotFound() from err


def load_order(db: Session, order_id: str | uuid.UUID) -> Order:
    order = db.get(Order, _resolve_order_uuid(order_id))
    if order is None:
        raise NotFound()
    return order


def _ensure_buyer(order: Order, user_id: str, message: str = "Not authorized") -> None:
    if order.buyer_id != user_id:
        raise AuthorizationFailed(message)


def _ensure_seller(order: Order, user_id: str, message: str = "Not authorized") -> None:
    if order.seller_id != user_id:
        raise AuthorizationFailed(message)


def _ensure_version(order: Order, expected_version: int | None) -> None:
    if expected_version is not None and order.version != expected_version:
        raise Conflict()


def _display_name(db: Session, user_id: str) -> str | None:
    account = db.get(UserAccount, user_id)
    return account.display_name if account else None


@contextmanager
def _unit_of_work(db: Session) -> Iterator[None]:
    """Commit everything done in the block, or nothing."""
    try:
        yield
        db.commit()
    except (StaleDataError, IntegrityError) as err:
        db.rollback()
        raise Conflict() from err
    except Exception:
        db.rollback()
        raise


def append_status_entry(
    order: Order,
    status: OrderStatus,
    *,
    actor_id: str | None,
    note: str | None,
    now: datetime,
) -> None:
    order.status_history.append(
        OrderStatusEntry(
            position=len(order.status_history),
            status=status,
            timestamp=now,
            note=note,
            updated_by=actor_id,
        )
    )
    order.updated_at = now


def transition_order_status(
    order: Order,
    next_status: OrderStatus,
    *,
    actor_id: str,
    note: str | None,
    now: datetime,
) -> OrderStatus:
    """Move ``order`` along the matrix and audit it. Does not commit.

    Returns the previous status. Nothing on the order is touched when the
    transition is rejected.
    """
    previous_status = order.status
    ensure_valid_transition(previous_status, next_status)
    order.status = next_status
    append_status_entry(order, next_status, actor_id=actor_id, note=note, now=now)
    return previous_status


def _mark_delivered(order: Order, now: datetime) -> None:
    order.delivered_at = now
    if order.payment_method == PaymentMethod.COD and order.payment_status != PaymentStatus.COMPLETED:
        order.payment_status = PaymentStatus.COMPLETED
        order.paid_at = now


def _flag_refund_if_paid(order: Order, reason: str) -> None:
    if order.payment_method == PaymentMethod.ONLINE and order.payment_status == PaymentStatus.COMPLETED:
        order.refund_amount = order.total_amount
        order.refund_reason = reason


def _after_transition(
    db: Session,
    dispatcher: SideEffectDispatcher,
    order: Order,
    previous_status: OrderStatus,
    actor_id: str,
    *,
    extra_payload: dict[str, Any] | None = None,
) -> None:
    metrics_store.increment("order_transitions_total")
    log_event(
        f"order_status_changed:{previous_status.value}->{order.status.value}",
        order_id=str(order.id),
        order_number=order.order_number,
        actor_id=actor_id,
    )
    effects = transition_effects(
        order,
        previous_status,
        actor_id,
        system_actor_id=settings.system_actor_id,
        seller_name=_display_name(db, order.seller_id),
        extra_payload=extra_payload,
    )
    dispatcher.dispatch(effects, order_id=str(order.id), order_number=order.order_number)


def calculate_pricing(subtotal: Decimal, discount: Decimal = Decimal("0")) -> dict[str, Decimal]:
    shipping_charge = (
        Decimal("0") if subtotal >= settings.free_shipping_threshold else settings.flat_shipping_fee
    )
    return {
        "subtotal": subtotal,
        "shipping_charge": shipping_charge,
        "discount": discount,
        "total_amount": subtotal + shipping_charge - discount,
    }


def _parse_payment_method(value: str | PaymentMethod) -> PaymentMethod:
    try:
        return PaymentMethod(value)
    except ValueError as err:
        raise ValidationFailed("Invalid payment method") from err


def _parse_status(value: str | OrderStatus) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError as err:
        raise ValidationFailed(f"Unknown order status: {value}") from err


def _clean(value: str | None) -> str | None:
    if value is None:
        return None
    stripped = value.strip()
    return stripped or None


def create_order(
    db: Session,
    *,
    buyer_id: str,
    post_id: str,
    quantity: int,
    payment_method: str | PaymentMethod,
    shipping_address: dict[str, Any],
    dispatcher: SideEffectDispatcher,
    selected_size: str | None = None,
    buyer_notes: str | None = None,
    chat_id: str | None = None,
    now: datetime | None = None,
) -> Order:
    moment = now or now_utc()
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationFailed("Quantity must be a positive integer")
    method = _parse_payment_method(payment_method)
    if not shipping_address:
        raise ValidationFailed("Missing required fields: shipping_address")
    selected_size = _clean(selected_size)

    with observe_timing("order_create_seconds"), _unit_of_work(db):
        product = get_product(db, post_id)
        if product.seller_id == buyer_id:
            raise ValidationFailed("Cannot buy your own product")
        seller = db.get(UserAccount, product.seller_id)
        if method == PaymentMethod.COD and not (seller and seller.cash_on_delivery_available):
            raise ValidationFailed("Cash on Delivery is not available for this seller")

        reservation = reserve_inventory(db, post_id, selected_size, quantity)
        pricing = calculate_pricing(reservation.unit_price * quantity)
        order_number = next_order_number(db, moment.date())

        size_suffix = f" ({reservation.selected_size})" if reservation.selected_size else ""
        item: dict[str, Any] = {
            "post_id": reservation.post_id,
            "title": f"{product.title}{size_suffix}",
            "price": str(reservation.unit_price),
            "quantity": quantity,
            "image": product.image_url,
        }
        if reservation.selected_size:
            item["selected_size"] = reservation.selected_size

        order = Order(
            order_number=order_number,
            buyer_id=buyer_id,
            seller_id=product.seller_id,
            items=[item],
            payment_method=method,
            payment_status=PaymentStatus.PENDING,
            status=OrderStatus.PENDING,
            shipping_address=dict(shipping_address),
            buyer_notes=_clean(buyer_notes),
            chat_id=chat_id,
            created_at=moment,
            updated_at=moment,
            **pricing,
        )
        append_status_entry(
            order, OrderStatus.PENDING, actor_id=buyer_id, note="Order placed", now=moment
        )
        db.add(order)
    db.refresh(order)

    metrics_store.increment("orders_created_total")
    log_event("order_created", order_id=str(order.id), order_number=order.order_number, actor_id=buyer_id)

    if reservation.alert is not None:
        metrics_store.increment("inventory_alerts_total")
        dispatcher.dispatch([reservation.alert], order_id=str(order.id), order_number=order_number)

    message = purchase_message(
        order,
        product_title=product.title,
        quantity=quantity,
        remaining_stock=reservation.aggregate_remaining,
    )
    order_key = order.id
    dispatcher.submit(
        lambda: _announce_purchase(dispatcher, message, order_key, order_number, SessionLocal)
    )
    dispatcher.dispatch(creation_notifications(order), order_id=str(order.id), order_number=order_number)
    # the purchase task may link the conversation from another session
    db.expire(order)
    return order


def _announce_purchase(
    dispatcher: SideEffectDispatcher,
    message: ChatMessage,
    order_id: uuid.UUID,
    order_number: str,
    session_factory: Callable[[], Session],
) -> None:
    """Send the purchase message and link its conversation to the order."""
    sent = dispatcher.send_now(message, order_id=str(order_id), order_number=order_number)
    if sent is None:
        return

    with session_factory() as db:
        try:
            with _unit_of_work(db):
                # plain UPDATE so the order version is left alone
                db.execute(
                    update(Order)
                    .where(Order.id == order_id, Order.chat_id.is_(None))
                    .values(chat_id=sent.chat_id)
                    .execution_options(synchronize_session=False)
                )
        except Exception:
            log_event(
                "order_chat_link_failed",
                order_id=str(order_id),
                order_number=order_number,
                level=logging.WARNING,
                exc_info=True,
            )


def get_order(db: Session, order_id: str, user_id: str) -> Order:
    order = load_order(db, order_id)
    if user_id not in {order.buyer_id, order.seller_id}:
        raise AuthorizationFailed("Not authorized to view this order")
    return order


def cancel_order(
    db: Session,
    order_id: str,
    buyer_id: str,
    reason: str | None = None,
    *,
    dispatcher: SideEffectDispatcher,
    now: datetime | None = None,
    expected_version: int | None = None,
) -> Order:
    moment = now or now_utc()
    with _unit_of_work(db):
        order = load_order(db, order_id)
        _ensure_buyer(order, buyer_id, "Not authorized to cancel this order")
        _ensure_version(order, expected_version)
        if order.status not in CANCELLABLE:
            raise InvalidTransition(order.status.value, OrderStatus.CANCELLED.value)
        if not within_cancellation_window(order.created_at, moment):
            raise WindowExpired(
                "Order cannot be cancelled after 24 hours of placement.",
                deadline=cancellation_deadline(order.created_at).isoformat(),
            )

        note = _clean(reason) or DEFAULT_BUYER_CANCEL_REASON
        previous_status = transition_order_status(
            order, OrderStatus.CANCELLED, actor_id=buyer_id, note=note, now=moment
        )
        order.cancellation_reason = note
        order.cancelled_by = buyer_id
        _flag_refund_if_paid(order, "Order cancelled")
    db.refresh(order)

    _after_transition(db, dispatcher, order, previous_status, buyer_id)
    return order


def request_refund(
    db: Session,
    order_id: str,
    buyer_id: str,
    reason: str,
    *,
    dispatcher: SideEffectDispatcher,
    now: datetime | None = None,
    expected_version: int | None = None,
) -> Order:
    moment = now or now_utc()
    note = _clean(reason)
    if note is None:
        raise ValidationFailed("A reason is required to request a refund")

    with _unit_of_work(db):
        order = load_order(db, order_id)
        _ensure_buyer(order, buyer_id)
        _ensure_version(order, expected_version)
        if order.status != OrderStatus.DELIVERED:
            raise InvalidTransition(order.status.value, OrderStatus.REFUND_REQUESTED.value)

        previous_status = transition_order_status(
            order, OrderStatus.REFUND_REQUESTED, actor_id=buyer_id, note=note, now=moment
        )
        order.refund_reason = note
        order.refund_amount = order.total_amount
    db.refresh(order)

    _after_transition(db, dispatcher, order, previous_status, buyer_id)
    return order


def dispute_order(
    db: Session,
    order_id: str,
    buyer_id: str,
    reason: str | None = None,
    *,
    dispatcher: SideEffectDispatcher,
    now: datetime | None = None,
    expected_version: int | None = None,
) -> Order:
    moment = now or now_utc()
    with _unit_of_work(db):
        order = load_order(db, order_id)
        _ensure_buyer(order, buyer_id)
        _ensure_version(order, expected_version)
        if order.status != OrderStatus.DELIVERED:
            raise InvalidTransition(order.status.value, OrderStatus.DISPUTED.value)
        if not within_dispute_window(order.delivered_at, moment):
            deadline = dispute_deadline(order.delivered_at) if order.delivered_at else None
            raise WindowExpired(
                "Disputes can only be opened within 24 hours of delivery."
                + (f" The window closed on {format_deadline(deadline)}." if deadline else ""),
                deadline=deadline.isoformat() if deadline else None,
            )

        note = _clean(reason) or DEFAULT_DISPUTE_REASON
        previous_status = transition_order_status(
            order, OrderStatus.DISPUTED, actor_id=buyer_id, note=note, now=moment
        )
        order.dispute_reason = note
        order.disputed_at = moment
    db.refresh(order)

    _after_transition(db, dispatcher, order, previous_status, buyer_id)
    return order


def confirm_delivery(
    db: Session,
    order_id: str,
    buyer_id: str,
    confirmed: bool,
    *,
    dispatcher: SideEffectDispatcher,
    now: datetime | None = None,
    expected_version: int | None = None,
) -> Order:
    moment = now or now_utc()
    with _unit_of_work(db):
        order = load_order(db, order_id)
        _ensure_buyer(order, buyer_id)
        _ensure_version(order, expected_version)
        if order.status not in CONFIRMABLE_DELIVERY:
            raise InvalidTransition(order.status.value, OrderStatus.DELIVERED.value)

        previous_status = order.status
        if not confirmed:
            append_status_entry(
                order, order.status, actor_id=buyer_id, note=NOT_RECEIVED_NOTE, now=moment
            )
        elif previous_status == OrderStatus.DELIVERED:
            append_status_entry(
                order,
                OrderStatus.DELIVERED,
                actor_id=buyer_id,
                note="Delivery confirmed by buyer",
                now=moment,
            )
            _mark_delivered(order, moment)
        else:
            transition_order_status(
                order,
                OrderStatus.DELIVERED,
                actor_id=buyer_id,
                note="Delivery confirmed by buyer",
                now=moment,
            )
            _mark_delivered(order, moment)
    db.refresh(order)

    if not confirmed:
        log_event(
            "order_delivery_not_received",
            order_id=str(order.id),
            order_number=order.order_number,
            actor_id=buyer_id,
        )
        dispatcher.dispatch(
            not_received_escalation(order), order_id=str(order.id), order_number=order.order_number
        )
        return order

    _after_transition(
        db,
        dispatcher,
        order,
        previous_status,
        buyer_id,
        extra_payload={"delivery_confirmed": True},
    )
    return order


def record_payment(
    db: Session,
    order_id: str,
    buyer_id: str,
    transaction_id: str | None = None,
    *,
    now: datetime | None = None,
) -> Order:
    """Mark an online order as paid. Gateway signature checks happen upstream."""
    moment = now or now_utc()
    with _unit_of_work(db):
        order = load_order(db, order_id)
        _ensure_buyer(order, buyer_id)
        if order.payment_method != PaymentMethod.ONLINE:
            raise ValidationFailed("Only online orders can record a payment")
        if order.status in {OrderStatus.CANCELLED, OrderStatus.REFUNDED}:
            raise ValidationFailed(f"Cannot record a payment for a {order.status.value} order")
        if order.payment_status == PaymentStatus.COMPLETED:
            return order

        order.payment_status = PaymentStatus.COMPLETED
        order.transaction_id = _clean(transaction_id) or f"TXN-{int(moment.timestamp() * 1000)}"
        order.paid_at = moment
        order.updated_at = moment
    db.refresh(order)
    log_event("order_payment_recorded", order_id=str(order.id), order_number=order.order_number, actor_id=buyer_id)
    return order


def update_order_status(
    db: Session,
    order_id: str,
    seller_id: str,
    new_status: str | OrderStatus,
    *,
    dispatcher: SideEffectDispatcher,
    tracking_number: str | None = None,
    tracking_link: str | None = None,
    carrier: str | None = None,
    estimated_delivery: datetime | None = None,
    note: str | None = None,
    now: datetime | None = None,
    expected_version: int | None = None,
) -> Order:
    moment = now or now_utc()
    target = _parse_status(new_status)
    tracking_number = _clean(tracking_number)
    note = _clean(note)

    with _unit_of_work(db):
        order = load_order(db, order_id)
        _ensure_seller(order, seller_id)
        _ensure_version(order, expected_version)
        if target in BUYER_ONLY_TARGETS:
            raise AuthorizationFailed(f"Only the buyer can move an order to {target.value}")
        if target == OrderStatus.SHIPPED and tracking_number is None:
            raise ValidationFailed("A tracking number is required to mark an order as shipped")

        previous_status = transition_order_status(
            order, target, actor_id=seller_id, note=note, now=moment
        )
        if tracking_number:
            order.tracking_number = tracking_number
        if _clean(tracking_link):
            order.tracking_link = _clean(tracking_link)
        if _clean(carrier):
            order.shipping_carrier = _clean(carrier)
        if estimated_delivery is not None:
            order.estimated_delivery = estimated_delivery

        if target == OrderStatus.DELIVERED:
            _mark_delivered(order, moment)
        elif target == OrderStatus.CANCELLED:
            order.cancellation_reason = note or DEFAULT_SELLER_CANCEL_REASON
            order.cancelled_by = seller_id
            _flag_refund_if_paid(order, "Order cancelled by seller")
        elif target == OrderStatus.REFUNDED and order.refund_amount is None:
            order.refund_amount = order.total_amount
    db.refresh(order)

    _after_transition(db, dispatcher, order, previous_status, seller_id)
    return order


def add_seller_notes(
    db: Session,
    order_id: str,
    seller_id: str,
    notes: str | None,
    *,
    now: datetime | None = None,
    expected_version: int | None = None,
) -> Order:
    moment = now or now_utc()
    with _unit_of_work(db):
        order = load_order(db, order_id)
        _ensure_seller(order, seller_id)
        _ensure_version(order, expected_version)
        order.seller_notes = _clean(notes)
        order.updated_at = moment
    db.refresh(order)
    return order


def auto_confirm_sweep(
    db: Session,
    *,
    dispatcher: SideEffectDispatcher,
    now: datetime | None = None,
) -> int:
    """Deliver every order idle in ``out_for_delivery`` past the auto-confirm period.

    Each order commits on its own; a failure is logged and the sweep moves on.
    Re-running only touches orders that still match, so partial runs are safe.
    """
    moment = now or now_utc()
    system_actor = settings.system_actor_id
    candidate_ids = list(
        db.scalars(
            select(Order.id)
            .where(
                Order.status == OrderStatus.OUT_FOR_DELIVERY,
                Order.updated_at < auto_confirm_cutoff(moment),
            )
            .order_by(Order.updated_at.asc())
        )
    )

    confirmed = 0
    for candidate_id in candidate_ids:
        try:
            with _unit_of_work(db):
                order = db.get(Order, candidate_id, populate_existing=True)
                if (
                    order is None
                    or order.status != OrderStatus.OUT_FOR_DELIVERY
                    or not eligible_for_auto_confirm(order.updated_at, moment)
                ):
                    continue
                previous_status = transition_order_status(
                    order,
                    OrderStatus.DELIVERED,
                    actor_id=system_actor,
                    note=AUTO_CONFIRM_NOTE,
                    now=moment,
                )
                _mark_delivered(order, moment)
        except Exception:
            metrics_store.increment("auto_confirm_failures_total")
            log_event(
                "auto_confirm_order_failed",
                order_id=str(candidate_id),
                actor_id=system_actor,
                level=logging.WARNING,
                exc_info=True,
            )
            continue

        confirmed += 1
        try:
            _after_transition(db, dispatcher, order, previous_status, system_actor)
        except Exception:
            db.rollback()
            metrics_store.increment("side_effect_failures_total")
            log_event(
                "auto_confirm_follow_up_failed",
                order_id=str(candidate_id),
                actor_id=system_actor,
                level=logging.WARNING,
                exc_info=True,
            )

    metrics_store.increment("auto_confirm_orders_total", confirmed)
    log_event(f"auto_confirm_sweep_completed confirmed={confirmed}", actor_id=system_actor)
    return confirmed
