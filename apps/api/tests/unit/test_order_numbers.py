from concurrent.futures import ThreadPoolExecutor
from datetime import date

from heed_orders.services.order_numbers import format_order_number, next_order_number


def test_format_pads_sequence_to_five_digits():
    assert format_order_number("HEED", date(2026, 3, 10), 7) == "HEED-20260310-00007"
    assert format_order_number("HEED", date(2026, 3, 10), 123456) == "HEED-20260310-123456"


def test_numbers_are_sequential_per_day(db_session):
    day = date(2026, 3, 10)
    first = next_order_number(db_session, day)
    second = next_order_number(db_session, day)
    other_day = next_order_number(db_session, date(2026, 3, 11))
    db_session.commit()

    assert first == "HEED-20260310-00001"
    assert second == "HEED-20260310-00002"
    assert other_day == "HEED-20260311-00001"


def test_rolled_back_allocation_is_not_consumed(db_session):
    day = date(2026, 3, 10)
    next_order_number(db_session, day)
    db_session.rollback()

    assert next_order_number(db_session, day) == "HEED-20260310-00001"


def test_concurrent_allocations_never_repeat(session_factory):
    day = date(2026, 3, 10)

    def allocate(_):
        with session_factory() as db:
            number = next_order_number(db, day)
            db.commit()
            return number

    with ThreadPoolExecutor(max_workers=8) as pool:
        numbers = list(pool.map(allocate, range(40)))

    assert len(set(numbers)) == 40
    assert sorted(numbers) == [f"HEED-20260310-{seq:05d}" for seq in range(1, 41)]
