from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from heed_orders.db.base import Base


class OrderCounter(Base):
    __tablename__ = "order_counters"

    # YYYYMMDD
    date: Mapped[str] = mapped_column(String(8), primary_key=True)
    seq: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
