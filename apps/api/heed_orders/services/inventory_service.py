from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from heed_orders.config import settings
from heed_orders.errors import InsufficientStock, NotFound, OutOfStock, ValidationFailed
from heed_orders.models.product import Product, ProductSizeVariant
from heed_orders.models.user_account import UserAccount
from heed_orders.services.notification_bridge import Notification
from heed_orders.services.order_messages import low_stock_alert


@dataclass(frozen=True)
class ReservationResult:
    post_id: str
    selected_size: str | None
    quantity: int
    unit_price: Decimal
    # None when the product does not track inventory
    unit_remaining: int | None
    aggregate_remaining: int | None
    alert: Notification | None = None


def _resolve_product_uuid(post_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(post_id))
    except ValueError as err:
        raise NotFound("Product not found") from err


def get_product(db: Session, post_id: str, *, for_update: bool = False) -> Product:
    stmt = select(Product).where(Product.id == _resolve_product_uuid(post_id))
    if for_update:
        stmt = stmt.with_for_update()
    product = db.scalar(stmt)
    if product is None:
        raise NotFound("Product not found")
    return product


def seller_alert_threshold(db: Session, seller_id: str) -> int:
    seller = db.get(UserAccount, seller_id)
    if seller is None or seller.inventory_alert_threshold is None:
        return settings.default_inventory_alert_threshold
    return seller.inventory_alert_threshold


def _stock_exhausted_error(size: str | None) -> OutOfStock:
    if size:
        return OutOfStock(f'Size "{size}" is out of stock')
    return OutOfStock()


def _insufficient_error(available: int, size: str | None) -> InsufficientStock:
    if size:
        return InsufficientStock(
            f'Only {available} item(s) available in size "{size}"', available=available
        )
    return InsufficientStock(f"Only {available} item(s) available in stock", available=available)


def _reserve_variant(
    db: Session, product: Product, selected_size: str | None, quantity: int
) -> tuple[ProductSizeVariant, int]:
    if not selected_size:
        raise ValidationFailed("Please select a size")

    variant = next((v for v in product.size_variants if v.size == selected_size), None)
    if variant is None or variant.quantity <= 0:
        raise _stock_exhausted_error(selected_size)
    if quantity > variant.quantity:
        raise _insufficient_error(variant.quantity, selected_size)

    result = db.execute(
        update(ProductSizeVariant)
        .where(ProductSizeVariant.id == variant.id, ProductSizeVariant.quantity >= quantity)
        .values(quantity=ProductSizeVariant.quantity - quantity)
        .execution_options(synchronize_session=False)
    )
    db.refresh(variant)
    if result.rowcount != 1:
        # Another purchase won the race for this size.
        if variant.quantity <= 0:
            raise _stock_exhausted_error(selected_size)
        raise _insufficient_error(variant.quantity, selected_size)

    total = (
        select(func.coalesce(func.sum(ProductSizeVariant.quantity), 0))
        .where(ProductSizeVariant.product_id == product.id)
        .scalar_subquery()
    )
    db.execute(
        update(Product)
        .where(Product.id == product.id)
        .values(quantity_available=total, is_out_of_stock=total == 0)
        .execution_options(synchronize_session=False)
    )
    db.refresh(product)
    return variant, int(product.quantity_available or 0)


def _reserve_managed(db: Session, product: Product, quantity: int) -> int:
    available = int(product.quantity_available or 0)
    if product.is_out_of_stock or available <= 0:
        raise OutOfStock()
    if quantity > available:
        raise _insufficient_error(available, None)

    remaining = Product.quantity_available - quantity
    result = db.execute(
        update(Product)
        .where(
            Product.id == product.id,
            Product.is_out_of_stock.is_(False),
            Product.quantity_available >= quantity,
        )
        .values(quantity_available=remaining, is_out_of_stock=remaining == 0)
        .execution_options(synchronize_session=False)
    )
    db.refresh(product)
    if result.rowcount != 1:
        current = int(product.quantity_available or 0)
        if product.is_out_of_stock or current <= 0:
            raise OutOfStock()
        raise _insufficient_error(current, None)
    return int(product.quantity_available or 0)


def reserve_inventory(
    db: Session,
    post_id: str,
    selected_size: str | None,
    quantity: int,
) -> ReservationResult:
    """Validate and decrement stock for one purchase.

    Runs inside the caller's transaction; the caller commits or rolls back
    together with the order row. Decrements are conditional updates, so of two
    racing purchases of the last unit only one can succeed.
    """
    if quantity <= 0:
        raise ValidationFailed("Quantity must be a positive integer")

    product = get_product(db, post_id, for_update=True)
    post_key = str(product.id)

    if product.size_variants:
        variant, aggregate = _reserve_variant(db, product, selected_size, quantity)
        unit_remaining = variant.quantity
        unit_price = variant.price
        size = variant.size
    elif product.quantity_available is not None:
        aggregate = _reserve_managed(db, product, quantity)
        unit_remaining = aggregate
        unit_price = product.price
        size = None
    else:
        return ReservationResult(
            post_id=post_key,
            selected_size=None,
            quantity=quantity,
            unit_price=product.price,
            unit_remaining=None,
            aggregate_remaining=None,
        )

    alert = low_stock_alert(
        seller_id=product.seller_id,
        post_id=post_key,
        title=product.title,
        size=size,
        unit_remaining=unit_remaining,
        aggregate_remaining=aggregate,
        threshold=seller_alert_threshold(db, product.seller_id),
    )
    return ReservationResult(
        post_id=post_key,
        selected_size=size,
        quantity=quantity,
        unit_price=unit_price,
        unit_remaining=unit_remaining,
        aggregate_remaining=aggregate,
        alert=alert,
    )
