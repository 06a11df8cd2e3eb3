"""create order lifecycle tables

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 00:00:00
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "20261018_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

order_status = sa.Enum(
    "pending",
    "confirmed",
    "processing",
    "shipping_initiated",
    "shipped",
    "out_for_delivery",
    "delivered",
    "cancelled",
    "disputed",
    "refund_requested",
    "refunded",
    name="order_status",
)
payment_method = sa.Enum("cod", "online", name="payment_method")
payment_status = sa.Enum("pending", "completed", name="payment_status")


def upgrade() -> None:
    op.create_table(
        "user_accounts",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("display_name", sa.String(length=255), nullable=False),
        sa.Column("cash_on_delivery_available", sa.Boolean(), nullable=False),
        sa.Column("inventory_alert_threshold", sa.Integer(), nullable=True),
    )

    op.create_table(
        "products",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "seller_id", sa.String(length=64), sa.ForeignKey("user_accounts.id"), nullable=False
        ),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("image_url", sa.String(length=512), nullable=False),
        sa.Column("quantity_available", sa.Integer(), nullable=True),
        sa.Column("is_out_of_stock", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_products_seller_id", "products", ["seller_id"])

    op.create_table(
        "product_size_variants",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "product_id",
            sa.Uuid(),
            sa.ForeignKey("products.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("size", sa.String(length=32), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.UniqueConstraint("product_id", "size", name="uq_product_size_variants_size"),
    )
    op.create_index(
        "ix_product_size_variants_product_id", "product_size_variants", ["product_id"]
    )

    op.create_table(
        "order_counters",
        sa.Column("date", sa.String(length=8), primary_key=True),
        sa.Column("seq", sa.Integer(), nullable=False),
    )

    op.create_table(
        "orders",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("order_number", sa.String(length=32), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("buyer_id", sa.String(length=64), nullable=False),
        sa.Column("seller_id", sa.String(length=64), nullable=False),
        sa.Column("items", sa.JSON(), nullable=False),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False),
        sa.Column("shipping_charge", sa.Numeric(12, 2), nullable=False),
        sa.Column("discount", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_method", payment_method, nullable=False),
        sa.Column("payment_status", payment_status, nullable=False),
        sa.Column("transaction_id", sa.String(length=128), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", order_status, nullable=False),
        sa.Column("shipping_address", sa.JSON(), nullable=False),
        sa.Column("tracking_number", sa.String(length=128), nullable=True),
        sa.Column("tracking_link", sa.String(length=512), nullable=True),
        sa.Column("shipping_carrier", sa.String(length=128), nullable=True),
        sa.Column("estimated_delivery", sa.DateTime(timezone=True), nullable=True),
        sa.Column("delivered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column("cancelled_by", sa.String(length=64), nullable=True),
        sa.Column("dispute_reason", sa.Text(), nullable=True),
        sa.Column("disputed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refund_reason", sa.Text(), nullable=True),
        sa.Column("refund_amount", sa.Numeric(12, 2), nullable=True),
        sa.Column("chat_id", sa.String(length=64), nullable=True),
        sa.Column("buyer_notes", sa.Text(), nullable=True),
        sa.Column("seller_notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_orders_order_number", "orders", ["order_number"], unique=True)
    op.create_index("ix_orders_buyer_id", "orders", ["buyer_id"])
    op.create_index("ix_orders_seller_id", "orders", ["seller_id"])
    op.create_index("ix_orders_status", "orders", ["status"])
    op.create_index("ix_orders_chat_id", "orders", ["chat_id"])
    op.create_index("ix_orders_created_at", "orders", ["created_at"])

    op.create_table(
        "order_status_entries",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column(
            "order_id",
            sa.Uuid(),
            sa.ForeignKey("orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("status", order_status, nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        sa.Column("updated_by", sa.String(length=64), nullable=True),
        sa.UniqueConstraint("order_id", "position", name="uq_order_status_entries_position"),
    )
    op.create_index("ix_order_status_entries_order_id", "order_status_entries", ["order_id"])


def downgrade() -> None:
    op.drop_index("ix_order_status_entries_order_id", table_name="order_status_entries")
    op.drop_table("order_status_entries")
    for index_name in (
        "ix_orders_created_at",
        "ix_orders_chat_id",
        "ix_orders_status",
        "ix_orders_seller_id",
        "ix_orders_buyer_id",
        "ix_orders_order_number",
    ):
        op.drop_index(index_name, table_name="orders")
    op.drop_table("orders")
    op.drop_table("order_counters")
    op.drop_index("ix_product_size_variants_product_id", table_name="product_size_variants")
    op.drop_table("product_size_variants")
    op.drop_index("ix_products_seller_id", table_name="products")
    op.drop_table("products")
    op.drop_table("user_accounts")

    bind = op.get_bind()
    order_status.drop(bind, checkfirst=True)
    payment_status.drop(bind, checkfirst=True)
    payment_method.drop(bind, checkfirst=True)
