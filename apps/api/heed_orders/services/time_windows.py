"""Time-boxed order rules.

Each predicate is evaluated against the ``now`` passed in by the caller; nothing
is cached or scheduled ahead of time. Boundaries are inclusive for the
customer-facing windows: an action exactly at the deadline is still allowed.
"""

from datetime import datetime, timedelta, timezone

CANCELLATION_WINDOW = timedelta(hours=24)
DISPUTE_WINDOW = timedelta(hours=24)
AUTO_CONFIRM_AFTER = timedelta(hours=48)
DISPUTE_REMINDER_TTL = timedelta(hours=24)


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def cancellation_deadline(created_at: datetime) -> datetime:
    return as_utc(created_at) + CANCELLATION_WINDOW


def dispute_deadline(delivered_at: datetime) -> datetime:
    return as_utc(delivered_at) + DISPUTE_WINDOW


def within_cancellation_window(created_at: datetime | None, now: datetime) -> bool:
    if created_at is None:
        return False
    return as_utc(now) <= cancellation_deadline(created_at)


def within_dispute_window(delivered_at: datetime | None, now: datetime) -> bool:
    if delivered_at is None:
        return False
    return as_utc(now) <= dispute_deadline(delivered_at)


def eligible_for_auto_confirm(last_updated_at: datetime, now: datetime) -> bool:
    """True once the order has been idle for longer than the auto-confirm period."""
    return as_utc(now) - as_utc(last_updated_at) > AUTO_CONFIRM_AFTER


def auto_confirm_cutoff(now: datetime) -> datetime:
    return as_utc(now) - AUTO_CONFIRM_AFTER
