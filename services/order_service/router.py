from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from services.payment_service.gateway import PaymentGateway, get_gateway
from shared.config.database import get_db
from shared.config.settings import (
    CHECKOUT_RATE_LIMIT,
    DEFAULT_PAGE_SIZE,
    MAX_PAGE_SIZE,
    STRIPE_PUBLIC_KEY,
)
from shared.i18n import resolve_language, translate
from shared.security import Actor, get_current_actor, limiter

from .models import OrderStatus, PaymentMethod, PaymentStatus
from .schemas import (
    AdminOrderListResponse,
    BuySingleRequest,
    CancelResponse,
    CheckoutRequest,
    CheckoutResponse,
    OrderEnvelope,
    OrderFilters,
    OrderListResponse,
    OrderResponse,
    OrderSort,
    OrderStatusUpdate,
    PaymentIntentResponse,
    SingleSummaryRequest,
    SummaryResponse,
)
from .service import (
    CancellationService,
    CheckoutService,
    OrderAdminService,
    OrderQueryService,
    PaymentIntentService,
)

router = APIRouter()
public_router = APIRouter()


@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "order", "status": "running"}


def _message(request: Request, code: str) -> str:
    return translate(code, resolve_language(request.headers.get("accept-language")))


def _naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def order_filters(
    status_: Optional[OrderStatus] = Query(None, alias="status"),
    payment_status: Optional[PaymentStatus] = Query(None, alias="paymentStatus"),
    payment_method: Optional[PaymentMethod] = Query(None, alias="paymentMethod"),
    currency: Optional[str] = Query(None, min_length=3, max_length=3),
    min_total: Optional[float] = Query(None, alias="minTotal", ge=0),
    max_total: Optional[float] = Query(None, alias="maxTotal", ge=0),
    from_date: Optional[datetime] = Query(None, alias="fromDate"),
    to_date: Optional[datetime] = Query(None, alias="toDate"),
    search: Optional[str] = Query(None, max_length=100),
    sort: OrderSort = Query(OrderSort.DATE_LATEST),
    page: int = Query(1, ge=1),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=MAX_PAGE_SIZE),
) -> OrderFilters:
    return OrderFilters(
        status=status_,
        payment_status=payment_status,
        payment_method=payment_method,
        currency=currency,
        min_total=min_total,
        max_total=max_total,
        from_date=_naive_utc(from_date),
        to_date=_naive_utc(to_date),
        search=search,
        sort=sort,
        page=page,
        limit=limit,
    )


def admin_order_filters(
    filters: OrderFilters = Depends(order_filters),
    user_id: Optional[int] = Query(None, alias="userId"),
    product_id: Optional[int] = Query(None, alias="productId"),
) -> OrderFilters:
    filters.user_id = user_id
    filters.product_id = product_id
    return filters


# --- Checkout ---

@router.post("/checkout", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(CHECKOUT_RATE_LIMIT)
async def checkout(
    request: Request,
    payload: CheckoutRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    order = await CheckoutService.checkout(db, actor, payload)
    return CheckoutResponse(
        message=_message(request, "ORDER_CREATED"),
        order=OrderResponse.model_validate(order),
        public_key=STRIPE_PUBLIC_KEY,
    )


@router.post("/buySingle", response_model=CheckoutResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit(CHECKOUT_RATE_LIMIT)
async def buy_single(
    request: Request,
    payload: BuySingleRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    order = await CheckoutService.buy_single(db, actor, payload)
    return CheckoutResponse(
        message=_message(request, "ORDER_CREATED"),
        order=OrderResponse.model_validate(order),
        public_key=STRIPE_PUBLIC_KEY,
    )


@router.post("/summary/single", response_model=SummaryResponse)
async def single_summary(
    payload: SingleSummaryRequest,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    summary = await CheckoutService.summarize_single(db, payload.product_id, payload.quantity)
    return SummaryResponse(summary=summary)


@router.get("/summary/cart", response_model=SummaryResponse)
async def cart_summary(
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    summary = await CheckoutService.summarize_cart(db, actor)
    return SummaryResponse(summary=summary)


# --- Queries ---

@router.get("/", response_model=OrderListResponse)
async def list_my_orders(
    filters: OrderFilters = Depends(order_filters),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    orders, total, total_pages = await OrderQueryService.list_my_orders(db, actor, filters)
    return OrderListResponse(
        orders=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        page=filters.page,
        limit=filters.limit,
        total_pages=total_pages,
    )


# Declared before /{order_id} so "admin" is not parsed as an id
@router.get("/admin", response_model=AdminOrderListResponse)
async def admin_list_orders(
    filters: OrderFilters = Depends(admin_order_filters),
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    orders, total, total_pages = await OrderQueryService.admin_list_orders(db, actor, filters)
    return AdminOrderListResponse(
        items=[OrderResponse.model_validate(o) for o in orders],
        total=total,
        page=filters.page,
        limit=filters.limit,
        total_pages=total_pages,
    )


@router.get("/{order_id}", response_model=OrderEnvelope)
async def get_order(
    order_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    return OrderEnvelope(data=await OrderQueryService.get_order(db, actor, order_id))


# --- Lifecycle ---

@router.patch("/{order_id}/status", response_model=OrderEnvelope)
async def update_order_status(
    request: Request,
    order_id: int,
    payload: OrderStatusUpdate,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
):
    order = await OrderAdminService.update_status(db, actor, order_id, payload.status)
    return OrderEnvelope(
        message=_message(request, "ORDER_STATUS_UPDATED"),
        data=OrderResponse.model_validate(order),
    )


@router.post("/{order_id}/cancel", response_model=CancelResponse)
async def cancel_order(
    request: Request,
    order_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    code = await CancellationService.cancel_order(db, actor, order_id, gateway)
    return CancelResponse(message=_message(request, code))


@router.post("/{order_id}/paymentIntent", response_model=PaymentIntentResponse)
@limiter.limit(CHECKOUT_RATE_LIMIT)
async def create_payment_intent(
    request: Request,
    order_id: int,
    actor: Actor = Depends(get_current_actor),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    client_secret = await PaymentIntentService.create_payment_intent(db, actor, order_id, gateway)
    return PaymentIntentResponse(client_secret=client_secret)
