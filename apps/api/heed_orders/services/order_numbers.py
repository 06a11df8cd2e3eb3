from datetime import date

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from heed_orders.config import settings
from heed_orders.models.order_counter import OrderCounter

SEQUENCE_WIDTH = 5

_UPSERT_DIALECTS = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def format_order_number(prefix: str, on_date: date, seq: int) -> str:
    return f"{prefix}-{on_date.strftime('%Y%m%d')}-{seq:0{SEQUENCE_WIDTH}d}"


def increment_daily_counter(db: Session, on_date: date) -> int:
    """Bump the counter row for ``on_date`` and return the new value.

    One ``INSERT ... ON CONFLICT DO UPDATE ... RETURNING`` statement, so two
    callers on the same date can never read the same value.
    """
    dialect_name = db.get_bind().dialect.name
    insert = _UPSERT_DIALECTS.get(dialect_name)
    if insert is None:
        raise RuntimeError(f"Order counters are not supported on {dialect_name}")

    date_key = on_date.strftime("%Y%m%d")
    stmt = insert(OrderCounter).values(date=date_key, seq=1)
    stmt = stmt.on_conflict_do_update(
        index_elements=[OrderCounter.date],
        set_={"seq": OrderCounter.seq + 1},
    ).returning(OrderCounter.seq)
    return int(db.execute(stmt).scalar_one())


def next_order_number(db: Session, on_date: date, prefix: str | None = None) -> str:
    seq = increment_daily_counter(db, on_date)
    return format_order_number(prefix or settings.order_number_prefix, on_date, seq)
