from sqlalchemy import Boolean, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from heed_orders.db.base import Base


class UserAccount(Base):
    __tablename__ = "user_accounts"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False)
    cash_on_delivery_available: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    inventory_alert_threshold: Mapped[int | None] = mapped_column(Integer, nullable=True)
