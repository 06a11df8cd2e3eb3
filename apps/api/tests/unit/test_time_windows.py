from datetime import timedelta

from heed_orders.services.time_windows import (
    auto_confirm_cutoff,
    cancellation_deadline,
    eligible_for_auto_confirm,
    within_cancellation_window,
    within_dispute_window,
)

from conftest import T0


def test_cancellation_window_is_inclusive_at_24_hours():
    assert within_cancellation_window(T0, T0 + timedelta(hours=2))
    assert within_cancellation_window(T0, T0 + timedelta(hours=24))
    assert not within_cancellation_window(T0, T0 + timedelta(hours=24, seconds=1))
    assert cancellation_deadline(T0) == T0 + timedelta(hours=24)


def test_dispute_window_requires_delivery_time():
    assert not within_dispute_window(None, T0)
    assert within_dispute_window(T0, T0 + timedelta(hours=23))
    assert not within_dispute_window(T0, T0 + timedelta(hours=25))


def test_naive_timestamps_are_read_as_utc():
    naive = T0.replace(tzinfo=None)
    assert within_cancellation_window(naive, T0 + timedelta(hours=1))


def test_auto_confirm_needs_strictly_more_than_48_hours():
    assert not eligible_for_auto_confirm(T0, T0 + timedelta(hours=48))
    assert eligible_for_auto_confirm(T0, T0 + timedelta(hours=48, seconds=1))
    assert auto_confirm_cutoff(T0 + timedelta(hours=49)) == T0 + timedelta(hours=1)
