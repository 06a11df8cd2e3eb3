from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from heed_orders.auth.dependencies import AuthContext, require_roles
from heed_orders.db.session import get_db
from heed_orders.dependencies import get_dispatcher
from heed_orders.observability import observe_timing
from heed_orders.schemas.order import (
    AutoConfirmResponse,
    CancelOrderRequest,
    ConfirmDeliveryRequest,
    DisputeRequest,
    OrderCreateRequest,
    OrderResponse,
    OrdersListResponse,
    PaymentRequest,
    RefundRequest,
    SellerNotesRequest,
    SellerStatsResponse,
    StatusUpdateRequest,
)
from heed_orders.services import order_queries, orders_service
from heed_orders.services.notification_bridge import SideEffectDispatcher

router = APIRouter(prefix="/api/v1/orders", tags=["orders"])

any_user = require_roles("USER", "ADMIN")


@router.post("", response_model=OrderResponse, summary="Place an order", status_code=201)
def create_order_endpoint(
    payload: OrderCreateRequest,
    db: Session = Depends(get_db),
    dispatcher: SideEffectDispatcher = Depends(get_dispatcher),
    auth: AuthContext = Depends(any_user),
) -> OrderResponse:
    order = orders_service.create_order(
        db,
        buyer_id=auth.user_id,
        post_id=payload.post_id,
        quantity=payload.quantity,
        payment_method=payload.payment_method,
        shipping_address=payload.shipping_address.model_dump(),
        selected_size=payload.selected_size,
        buyer_notes=payload.buyer_notes,
        chat_id=payload.chat_id,
        dispatcher=dispatcher,
    )
    return OrderResponse.model_validate(order)


@router.get("/buyer", response_model=OrdersListResponse, summary="Orders placed by the caller")
def list_buyer_orders_endpoint(
    status: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(any_user),
) -> OrdersListResponse:
    items, total = order_queries.list_buyer_orders(
        db, auth.user_id, status_filter=status, page=page, page_size=page_size
    )
    return OrdersListResponse(
        items=[OrderResponse.model_validate(order) for order in items],
        page=page,
        page_size=page_size,
        total=total,
    )


@router.get("/seller", response_model=OrdersListResponse, summary="Orders received by the caller")
def list_seller_orders_endpoint(
    status: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    page_size: int = Query(default=20, ge=1, le=100),
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(any_user),
) -> OrdersListResponse:
    items, total = order_queries.list_seller_orders(
        db, auth.user_id, status_filter=status, page=page, page_size=page_size
    )
    return OrdersListResponse(
        items=[OrderResponse.model_validate(order) for order in items],
        page=page,
        page_size=page_size,
        total=total,
    )


@router.get("/seller/stats", response_model=SellerStatsResponse, summary="Seller dashboard figures")
def seller_stats_endpoint(
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(any_user),
) -> SellerStatsResponse:
    return SellerStatsResponse.model_validate(order_queries.seller_stats(db, auth.user_id))


@router.post(
    "/auto-confirm",
    response_model=AutoConfirmResponse,
    summary="Deliver orders left in out_for_delivery for 48 hours",
)
def auto_confirm_endpoint(
    db: Session = Depends(get_db),
    dispatcher: SideEffectDispatcher = Depends(get_dispatcher),
    _auth: AuthContext = Depends(require_roles("ADMIN")),
) -> AutoConfirmResponse:
    with observe_timing("auto_confirm_sweep_seconds"):
        confirmed = orders_service.auto_confirm_sweep(db, dispatcher=dispatcher)
    return AutoConfirmResponse(confirmed=confirmed)


@router.get("/{order_id}", response_model=OrderResponse, summary="Get one order")
def get_order_endpoint(
    order_id: str,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(any_user),
) -> OrderResponse:
    return OrderResponse.model_validate(orders_service.get_order(db, order_id, auth.user_id))


@router.post("/{order_id}/cancel", response_model=OrderResponse, summary="Buyer cancels")
def cancel_order_endpoint(
    order_id: str,
    payload: CancelOrderRequest,
    db: Session = Depends(get_db),
    dispatcher: SideEffectDispatcher = Depends(get_dispatcher),
    auth: AuthContext = Depends(any_user),
) -> OrderResponse:
    order = orders_service.cancel_order(
        db,
        order_id,
        auth.user_id,
        payload.reason,
        dispatcher=dispatcher,
        expected_version=payload.expected_version,
    )
    return OrderResponse.model_validate(order)


@router.post("/{order_id}/refund", response_model=OrderResponse, summary="Buyer requests a refund")
def request_refund_endpoint(
    order_id: str,
    payload: RefundRequest,
    db: Session = Depends(get_db),
    dispatcher: SideEffectDispatcher = Depends(get_dispatcher),
    auth: AuthContext = Depends(any_user),
) -> OrderResponse:
    order = orders_service.request_refund(
        db,
        order_id,
        auth.user_id,
        payload.reason,
        dispatcher=dispatcher,
        expected_version=payload.expected_version,
    )
    return OrderResponse.model_validate(order)


@router.post("/{order_id}/dispute", response_model=OrderResponse, summary="Buyer opens a dispute")
def dispute_order_endpoint(
    order_id: str,
    payload: DisputeRequest,
    db: Session = Depends(get_db),
    dispatcher: SideEffectDispatcher = Depends(get_dispatcher),
    auth: AuthContext = Depends(any_user),
) -> OrderResponse:
    order = orders_service.dispute_order(
        db,
        order_id,
        auth.user_id,
        payload.reason,
        dispatcher=dispatcher,
        expected_version=payload.expected_version,
    )
    return OrderResponse.model_validate(order)


@router.post(
    "/{order_id}/confirm-delivery",
    response_model=OrderResponse,
    summary="Buyer confirms or denies receipt",
)
def confirm_delivery_endpoint(
    order_id: str,
    payload: ConfirmDeliveryRequest,
    db: Session = Depends(get_db),
    dispatcher: SideEffectDispatcher = Depends(get_dispatcher),
    auth: AuthContext = Depends(any_user),
) -> OrderResponse:
    order = orders_service.confirm_delivery(
        db,
        order_id,
        auth.user_id,
        payload.confirmed,
        dispatcher=dispatcher,
        expected_version=payload.expected_version,
    )
    return OrderResponse.model_validate(order)


@router.post("/{order_id}/payment", response_model=OrderResponse, summary="Record an online payment")
def record_payment_endpoint(
    order_id: str,
    payload: PaymentRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(any_user),
) -> OrderResponse:
    order = orders_service.record_payment(db, order_id, auth.user_id, payload.transaction_id)
    return OrderResponse.model_validate(order)


@router.patch("/{order_id}/status", response_model=OrderResponse, summary="Seller moves an order")
def update_status_endpoint(
    order_id: str,
    payload: StatusUpdateRequest,
    db: Session = Depends(get_db),
    dispatcher: SideEffectDispatcher = Depends(get_dispatcher),
    auth: AuthContext = Depends(any_user),
) -> OrderResponse:
    order = orders_service.update_order_status(
        db,
        order_id,
        auth.user_id,
        payload.status,
        dispatcher=dispatcher,
        tracking_number=payload.tracking_number,
        tracking_link=payload.tracking_link,
        carrier=payload.carrier,
        estimated_delivery=payload.estimated_delivery,
        note=payload.note,
        expected_version=payload.expected_version,
    )
    return OrderResponse.model_validate(order)


@router.patch(
    "/{order_id}/seller-notes", response_model=OrderResponse, summary="Seller's private notes"
)
def seller_notes_endpoint(
    order_id: str,
    payload: SellerNotesRequest,
    db: Session = Depends(get_db),
    auth: AuthContext = Depends(any_user),
) -> OrderResponse:
    order = orders_service.add_seller_notes(
        db, order_id, auth.user_id, payload.notes, expected_version=payload.expected_version
    )
    return OrderResponse.model_validate(order)
