from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from sqlalchemy import and_, func, select
from sqlalchemy.orm import Session

from heed_orders.models.order import Order, OrderStatus, PaymentStatus

REVENUE_STATUSES = (OrderStatus.SHIPPED, OrderStatus.OUT_FOR_DELIVERY, OrderStatus.DELIVERED)
ACTION_STATUSES = (OrderStatus.PENDING, OrderStatus.REFUND_REQUESTED, OrderStatus.DISPUTED)
RECENT_ORDERS_LIMIT = 5


@dataclass
class SellerStats:
    counts: dict[str, int]
    total_orders: int
    total_revenue: Decimal
    pending_actions: int
    recent_orders: list[Order] = field(default_factory=list)


def parse_status_filter(raw: str | None) -> list[OrderStatus] | None:
    """``None``/``"all"`` means no filter; unknown names raise ``ValueError``."""
    if raw is None or raw.strip().lower() in {"", "all"}:
        return None
    return [OrderStatus(part.strip()) for part in raw.split(",") if part.strip()]


def _list_orders(
    db: Session,
    party_filter: Any,
    *,
    status_filter: str | None,
    page: int,
    page_size: int,
) -> tuple[list[Order], int]:
    filters: list[Any] = [party_filter]
    try:
        statuses = parse_status_filter(status_filter)
    except ValueError:
        return [], 0
    if statuses:
        filters.append(Order.status.in_(statuses))

    stmt = select(Order).where(and_(*filters))
    total = db.scalar(select(func.count()).select_from(stmt.subquery())) or 0
    rows = list(
        db.scalars(
            stmt.order_by(Order.created_at.desc(), Order.order_number.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
    )
    return rows, int(total)


def list_buyer_orders(
    db: Session,
    buyer_id: str,
    *,
    status_filter: str | None = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Order], int]:
    return _list_orders(
        db, Order.buyer_id == buyer_id, status_filter=status_filter, page=page, page_size=page_size
    )


def list_seller_orders(
    db: Session,
    seller_id: str,
    *,
    status_filter: str | None = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Order], int]:
    return _list_orders(
        db, Order.seller_id == seller_id, status_filter=status_filter, page=page, page_size=page_size
    )


def seller_stats(db: Session, seller_id: str) -> SellerStats:
    rows = db.execute(
        select(Order.status, func.count(Order.id))
        .where(Order.seller_id == seller_id)
        .group_by(Order.status)
    ).all()
    counts = {status.value: 0 for status in OrderStatus}
    for status, count in rows:
        counts[OrderStatus(status).value] = int(count)

    revenue = db.scalar(
        select(func.coalesce(func.sum(Order.total_amount), 0)).where(
            Order.seller_id == seller_id,
            Order.status.in_(REVENUE_STATUSES),
            Order.payment_status == PaymentStatus.COMPLETED,
        )
    )
    recent = list(
        db.scalars(
            select(Order)
            .where(Order.seller_id == seller_id)
            .order_by(Order.created_at.desc(), Order.order_number.desc())
            .limit(RECENT_ORDERS_LIMIT)
        )
    )
    return SellerStats(
        counts=counts,
        total_orders=sum(counts.values()),
        total_revenue=Decimal(str(revenue or 0)),
        pending_actions=sum(counts[status.value] for status in ACTION_STATUSES),
        recent_orders=recent,
    )
