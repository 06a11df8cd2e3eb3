import itertools

import pytest

from heed_orders.errors import InvalidTransition
from heed_orders.models.order import Order, OrderStatus
from heed_orders.services.orders_service import transition_order_status
from heed_orders.services.state_machine import (
    ORDER_STATE_TRANSITIONS,
    TERMINAL,
    ensure_valid_transition,
    is_allowed_transition,
)

from conftest import T0

S = OrderStatus

EXPECTED_EDGES = {
    (S.PENDING, S.CONFIRMED),
    (S.PENDING, S.CANCELLED),
    (S.CONFIRMED, S.SHIPPING_INITIATED),
    (S.CONFIRMED, S.CANCELLED),
    (S.PROCESSING, S.SHIPPING_INITIATED),
    (S.PROCESSING, S.CANCELLED),
    (S.SHIPPING_INITIATED, S.SHIPPED),
    (S.SHIPPED, S.OUT_FOR_DELIVERY),
    (S.SHIPPED, S.DELIVERED),
    (S.OUT_FOR_DELIVERY, S.DELIVERED),
    (S.DELIVERED, S.DISPUTED),
    (S.DELIVERED, S.REFUND_REQUESTED),
    (S.DISPUTED, S.REFUNDED),
    (S.REFUND_REQUESTED, S.REFUNDED),
}


def test_matrix_covers_every_status():
    assert set(ORDER_STATE_TRANSITIONS) == set(OrderStatus)


@pytest.mark.parametrize("current,target", list(itertools.product(OrderStatus, repeat=2)))
def test_transition_allowed_exactly_for_matrix_edges(current, target):
    expected = (current, target) in EXPECTED_EDGES
    assert is_allowed_transition(current, target) is expected

    if expected:
        ensure_valid_transition(current, target)
    else:
        with pytest.raises(InvalidTransition) as exc:
            ensure_valid_transition(current, target)
        assert exc.value.kind == "InvalidTransition"
        assert exc.value.details == {"current_status": current.value, "target_status": target.value}


def test_terminal_states_have_no_exits():
    assert TERMINAL == {S.CANCELLED, S.REFUNDED}


def test_same_status_is_never_a_transition():
    for status in OrderStatus:
        assert not is_allowed_transition(status, status)


def _transient_order(status: OrderStatus) -> Order:
    order = Order(status=status, buyer_id="b", seller_id="s", items=[], updated_at=T0)
    order.status_history = []
    return order


def test_rejected_transition_leaves_order_untouched():
    order = _transient_order(S.PENDING)

    with pytest.raises(InvalidTransition):
        transition_order_status(order, S.SHIPPED, actor_id="s", note=None, now=T0.replace(hour=12))

    assert order.status == S.PENDING
    assert order.status_history == []
    assert order.updated_at == T0


def test_accepted_transition_appends_one_history_entry():
    order = _transient_order(S.PENDING)
    later = T0.replace(hour=11)

    previous = transition_order_status(order, S.CONFIRMED, actor_id="s", note="ok", now=later)

    assert previous == S.PENDING
    assert order.status == S.CONFIRMED
    assert order.updated_at == later
    assert [(e.position, e.status, e.note, e.updated_by) for e in order.status_history] == [
        (0, S.CONFIRMED, "ok", "s")
    ]
