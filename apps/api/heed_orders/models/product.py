import uuid
from decimal import Decimal

from sqlalchemy import Boolean, ForeignKey, Integer, Numeric, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from heed_orders.db.base import Base


class Product(Base):
    __tablename__ = "products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    seller_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("user_accounts.id"), nullable=False, index=True
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))
    image_url: Mapped[str] = mapped_column(String(512), nullable=False, default="")
    # NULL means inventory is not tracked for this product
    quantity_available: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_out_of_stock: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    size_variants: Mapped[list["ProductSizeVariant"]] = relationship(
        back_populates="product",
        order_by="ProductSizeVariant.position",
        lazy="selectin",
        cascade="all, delete-orphan",
    )


class ProductSizeVariant(Base):
    __tablename__ = "product_size_variants"
    __table_args__ = (UniqueConstraint("product_id", "size", name="uq_product_size_variants_size"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    size: Mapped[str] = mapped_column(String(32), nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    product: Mapped[Product] = relationship(back_populates="size_variants")
