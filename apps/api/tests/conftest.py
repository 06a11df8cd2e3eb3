from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

import heed_orders.models  # noqa: F401
from heed_orders.auth.jwt import issue_token
from heed_orders.config import settings
from heed_orders.db.base import Base
from heed_orders.db.session import engine as app_engine
from heed_orders.main import app
from heed_orders.models.order import PaymentMethod
from heed_orders.models.product import Product, ProductSizeVariant
from heed_orders.models.user_account import UserAccount
from heed_orders.observability import metrics_store
from heed_orders.services import orders_service
from heed_orders.services.notification_bridge import SideEffectDispatcher, outbox, reset_outbox

T0 = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)

BUYER = "buyer-1"
SELLER = "seller-1"
OTHER_USER = "user-9"

SHIPPING_ADDRESS = {
    "full_name": "Asha Rao",
    "phone": "+919800000001",
    "line1": "12 Lake Road",
    "city": "Pune",
    "postal_code": "411001",
}


@pytest.fixture(scope="session", autouse=True)
def enable_testing_mode():
    original = settings.testing
    settings.testing = True
    yield
    settings.testing = original


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=app_engine)
    Base.metadata.create_all(bind=app_engine)
    yield


@pytest.fixture(autouse=True)
def reset_side_effects():
    reset_outbox()
    metrics_store.reset()
    yield


@pytest.fixture
def session_factory():
    return sessionmaker(autocommit=False, autoflush=False, bind=app_engine)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def client():
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def dispatcher():
    return SideEffectDispatcher(outbox)


@pytest.fixture
def make_user(db_session):
    def _make(user_id: str, *, cod: bool = True, alert_threshold: int | None = None) -> UserAccount:
        account = UserAccount(
            id=user_id,
            display_name=user_id.replace("-", " ").title(),
            cash_on_delivery_available=cod,
            inventory_alert_threshold=alert_threshold,
        )
        db_session.add(account)
        db_session.commit()
        return account

    return _make


@pytest.fixture
def make_product(db_session):
    def _make(
        seller_id: str = SELLER,
        *,
        title: str = "Linen Shirt",
        price: str = "300",
        quantity: int | None = 5,
        sizes: dict[str, tuple[int, str]] | None = None,
    ) -> Product:
        product = Product(
            seller_id=seller_id,
            title=title,
            price=Decimal(price),
            image_url="https://cdn.example.test/shirt.jpg",
            quantity_available=quantity,
            is_out_of_stock=quantity == 0,
        )
        for position, (size, (size_quantity, size_price)) in enumerate((sizes or {}).items()):
            product.size_variants.append(
                ProductSizeVariant(
                    position=position, size=size, quantity=size_quantity, price=Decimal(size_price)
                )
            )
        if sizes:
            product.quantity_available = sum(q for q, _ in sizes.values())
            product.is_out_of_stock = product.quantity_available == 0
        db_session.add(product)
        db_session.commit()
        return product

    return _make


@pytest.fixture
def parties(make_user):
    make_user(BUYER)
    make_user(SELLER)
    make_user(OTHER_USER)


@pytest.fixture
def place_order(db_session, dispatcher):
    def _place(product: Product, *, quantity: int = 1, buyer_id: str = BUYER, now=T0, **kwargs):
        kwargs.setdefault("payment_method", PaymentMethod.COD)
        return orders_service.create_order(
            db_session,
            buyer_id=buyer_id,
            post_id=str(product.id),
            quantity=quantity,
            shipping_address=SHIPPING_ADDRESS,
            dispatcher=dispatcher,
            now=now,
            **kwargs,
        )

    return _place


@pytest.fixture
def auth_headers():
    def _headers(sub: str, role: str = "USER") -> dict[str, str]:
        return {"Authorization": f"Bearer {issue_token(sub, settings.jwt_secret, role=role)}"}

    return _headers
