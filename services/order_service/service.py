"""
Order use cases: checkout, queries, admin status changes, customer
cancellation and payment-intent creation.

Every method receives the request's AsyncSession and opens the transaction
itself with `async with db.begin()`, so one raised OrderEngineError rolls back
everything the use case wrote.
"""
import math
import time
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from services.address_service.repository import AddressRepository
from services.cart_service.repository import CartRepository
from services.payment_service.gateway import PaymentGateway
from services.product_service.models import Product
from services.product_service.repository import ProductRepository
from shared.clock import reservation_expiry
from shared.errors import (
    Conflict,
    Forbidden,
    InvalidState,
    NotFound,
    NotPayable,
    OrderEngineError,
    ValidationFailed,
)
from shared.observability import (
    ecomm_checkout_duration_seconds,
    ecomm_checkout_total,
    ecomm_refunds_total,
)
from shared.security import Actor

from . import state_machine
from .models import Order, OrderItem, OrderStatus, PaymentMethod, PaymentStatus
from .repository import OrderRepository
from .schemas import (
    BuySingleRequest,
    CheckoutRequest,
    OrderFilters,
    OrderResponse,
    OrderSummary,
    SummaryItem,
)

logger = structlog.get_logger(__name__)

SHIPPING_FEE = 0.0
TAX_AMOUNT = 0.0


@dataclass
class PricedLine:
    product: Product
    quantity: int

    @property
    def line_total(self) -> float:
        return self.product.price * self.quantity


def to_minor_units(amount: float) -> int:
    """Provider amount in cents; card payments only, two decimals."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _totals(lines: list[PricedLine]) -> tuple[float, float, float, float]:
    subtotal = sum(line.line_total for line in lines)
    total = subtotal + SHIPPING_FEE + TAX_AMOUNT
    return subtotal, SHIPPING_FEE, TAX_AMOUNT, total


async def _price_lines(
    db: AsyncSession,
    lines: Iterable[tuple[int, int]],
    currency: str,
    *,
    quote: bool = False,
) -> list[PricedLine]:
    """Re-read every product and check availability and currency.

    The stock check is advisory only: nothing is reserved here. A quote
    reports a missing product as 404; checkout reports it as out of stock.
    """
    priced = []
    for product_id, quantity in lines:
        product = await ProductRepository.get_active_product(db, product_id)
        if product is None:
            if quote:
                raise NotFound("PRODUCT_NOT_FOUND")
            raise Conflict("INSUFFICIENT_STOCK", f"product {product_id} unavailable")
        if product.currency != currency:
            raise ValidationFailed("CART_CURRENCY_MISMATCH")
        if product.stock_qty < quantity:
            raise Conflict("INSUFFICIENT_STOCK", f"product {product_id} has {product.stock_qty}")
        priced.append(PricedLine(product=product, quantity=quantity))
    return priced


def _build_order(
    user_id: int,
    lines: list[PricedLine],
    currency: str,
    shipping_address: dict,
    payment_method: PaymentMethod,
    notes: Optional[str],
) -> Order:
    subtotal, shipping_fee, tax_amount, total = _totals(lines)
    return Order(
        user_id=user_id,
        items=[
            OrderItem(
                product_id=line.product.id,
                product_name=line.product.name,
                product_image=line.product.primary_image,
                unit_price=line.product.price,
                quantity=line.quantity,
                line_total=line.line_total,
                currency=currency,
            )
            for line in lines
        ],
        subtotal=subtotal,
        shipping_fee=shipping_fee,
        tax_amount=tax_amount,
        total=total,
        currency=currency,
        status=OrderStatus.PENDING.value,
        payment_status=PaymentStatus.PENDING.value,
        payment_method=payment_method.value,
        reserved_until=reservation_expiry(),
        stock_released=False,
        shipping_address=shipping_address,
        notes=notes,
    )


def _summary(lines: list[PricedLine], currency: str) -> OrderSummary:
    subtotal, shipping_fee, tax_amount, total = _totals(lines)
    return OrderSummary(
        items=[
            SummaryItem(
                product_id=line.product.id,
                name=line.product.name,
                image=line.product.primary_image,
                unit_price=line.product.price,
                quantity=line.quantity,
                line_total=line.line_total,
                currency=currency,
            )
            for line in lines
        ],
        subtotal=subtotal,
        shipping_fee=shipping_fee,
        tax_amount=tax_amount,
        total=total,
        currency=currency,
    )


class CheckoutService:

    @staticmethod
    async def checkout(db: AsyncSession, actor: Actor, data: CheckoutRequest) -> Order:
        """Turn the caller's cart into a pending order and empty the cart."""
        started = time.perf_counter()
        try:
            async with db.begin():
                address = await AddressRepository.get_owned(db, data.address_id, actor.user_id)
                if address is None:
                    raise NotFound("ADDRESS_NOT_FOUND")

                cart = await CartRepository.get_cart(db, actor.user_id)
                if cart is None or not cart.items:
                    raise InvalidState("CART_EMPTY")

                currency = cart.items[0].currency
                if any(item.currency != currency for item in cart.items):
                    raise ValidationFailed("CART_CURRENCY_MISMATCH")

                lines = await _price_lines(
                    db, [(item.product_id, item.quantity) for item in cart.items], currency
                )
                order = _build_order(
                    actor.user_id, lines, currency, address.snapshot(), data.payment_method, data.notes
                )
                await OrderRepository.add_order(db, order)
                await CartRepository.clear_cart(db, cart.id)
        except OrderEngineError:
            ecomm_checkout_total.labels(kind="cart", status="failed").inc()
            raise

        ecomm_checkout_total.labels(kind="cart", status="success").inc()
        ecomm_checkout_duration_seconds.observe(time.perf_counter() - started)
        logger.info("order.created", order_id=order.id, user_id=actor.user_id, total=order.total, kind="cart")
        return await OrderRepository.get_order(db, order.id)

    @staticmethod
    async def buy_single(db: AsyncSession, actor: Actor, data: BuySingleRequest) -> Order:
        """Create a pending order for one product without touching the cart."""
        started = time.perf_counter()
        try:
            async with db.begin():
                address = await AddressRepository.get_owned(db, data.address_id, actor.user_id)
                if address is None:
                    raise NotFound("ADDRESS_NOT_FOUND")

                product = await ProductRepository.get_active_product(db, data.product_id)
                if product is None:
                    raise Conflict("INSUFFICIENT_STOCK", f"product {data.product_id} unavailable")

                lines = await _price_lines(db, [(product.id, data.quantity)], product.currency)
                order = _build_order(
                    actor.user_id, lines, product.currency, address.snapshot(), data.payment_method, data.notes
                )
                await OrderRepository.add_order(db, order)
        except OrderEngineError:
            ecomm_checkout_total.labels(kind="single", status="failed").inc()
            raise

        ecomm_checkout_total.labels(kind="single", status="success").inc()
        ecomm_checkout_duration_seconds.observe(time.perf_counter() - started)
        logger.info("order.created", order_id=order.id, user_id=actor.user_id, total=order.total, kind="single")
        return await OrderRepository.get_order(db, order.id)

    @staticmethod
    async def summarize_single(db: AsyncSession, product_id: int, quantity: int) -> OrderSummary:
        product = await ProductRepository.get_active_product(db, product_id)
        if product is None:
            raise NotFound("PRODUCT_NOT_FOUND")
        if quantity < 1:
            raise ValidationFailed("INVALID_QUANTITY")
        lines = await _price_lines(db, [(product.id, quantity)], product.currency, quote=True)
        return _summary(lines, product.currency)

    @staticmethod
    async def summarize_cart(db: AsyncSession, actor: Actor) -> OrderSummary:
        cart = await CartRepository.get_cart(db, actor.user_id)
        if cart is None or not cart.items:
            raise InvalidState("CART_EMPTY")
        currency = cart.items[0].currency
        lines = await _price_lines(
            db, [(item.product_id, item.quantity) for item in cart.items], currency, quote=True
        )
        return _summary(lines, currency)


class OrderQueryService:

    @staticmethod
    async def list_my_orders(db: AsyncSession, actor: Actor, filters: OrderFilters):
        filters.user_id = actor.user_id
        filters.product_id = None
        orders, total = await OrderRepository.list_orders(db, filters)
        return orders, total, _total_pages(total, filters.limit)

    @staticmethod
    async def admin_list_orders(db: AsyncSession, actor: Actor, filters: OrderFilters):
        if not actor.is_admin:
            raise Forbidden()
        orders, total = await OrderRepository.list_orders(db, filters)
        return orders, total, _total_pages(total, filters.limit)

    @staticmethod
    async def get_order(db: AsyncSession, actor: Actor, order_id: int) -> OrderResponse:
        """Owner or admin. Non-admins do not see links to deactivated products."""
        if actor.is_admin:
            order = await OrderRepository.get_order(db, order_id)
        else:
            order = await OrderRepository.get_owned_order(db, order_id, actor.user_id)
        if order is None:
            raise NotFound("ORDER_NOT_FOUND")

        response = OrderResponse.model_validate(order)
        if not actor.is_admin:
            products = await ProductRepository.get_products_by_ids(
                db, [item.product_id for item in order.items]
            )
            for item in response.items:
                product = products.get(item.product_id)
                if product is None or not product.is_active:
                    item.product_id = None
        return response


def _total_pages(total: int, limit: int) -> int:
    return math.ceil(total / limit) if limit else 0


class OrderAdminService:

    @staticmethod
    async def update_status(db: AsyncSession, actor: Actor, order_id: int, target: OrderStatus) -> Order:
        if not actor.is_admin:
            raise Forbidden()
        async with db.begin():
            order = await OrderRepository.get_order(db, order_id)
            if order is None:
                raise NotFound("ORDER_NOT_FOUND")
            await state_machine.apply_admin_transition(db, order, target)
        return await OrderRepository.get_order(db, order_id)


class CancellationService:

    @staticmethod
    async def cancel_order(db: AsyncSession, actor: Actor, order_id: int, gateway: PaymentGateway) -> str:
        """Customer cancellation; returns the message code for the response.

        A paid order is refunded at the provider and marked cancelled here.
        Restocking and payment_status=refunded wait for the charge.refunded
        webhook, the single path that gives stock back.
        """
        async with db.begin():
            order = await OrderRepository.get_owned_order(db, order_id, actor.user_id)
            if order is None:
                raise NotFound("ORDER_NOT_FOUND")

            status = OrderStatus(order.status)
            if status is OrderStatus.CANCELLED:
                return "ORDER_ALREADY_CANCELLED"
            if status not in (OrderStatus.PENDING, OrderStatus.PAID):
                raise InvalidState("ORDER_CANNOT_BE_CANCELLED")

            if order.payment_status == PaymentStatus.PENDING.value:
                if not await state_machine.cancel_unpaid(db, order.id):
                    raise InvalidState("ORDER_CANNOT_BE_CANCELLED", "order changed concurrently")
                logger.info("order.cancelled", order_id=order.id, refunded=False)
                return "ORDER_CANCELLED"

            if not await state_machine.cancel_paid(db, order.id):
                raise InvalidState("ORDER_CANNOT_BE_CANCELLED", "order changed concurrently")
            # Refund last: a provider failure rolls the cancellation back
            await gateway.create_refund(
                order.payment_intent_id,
                idempotency_key=f"refund_order_{order.id}",
            )
            ecomm_refunds_total.labels(reason="customer_cancel").inc()
            logger.info("order.cancelled", order_id=order.id, refunded=True, payment_intent=order.payment_intent_id)
        return "ORDER_CANCELLED"


class PaymentIntentService:

    @staticmethod
    async def create_payment_intent(db: AsyncSession, actor: Actor, order_id: int, gateway: PaymentGateway) -> str:
        """Authorize a charge for a pending order and return the client secret.

        The idempotency key is derived from the order id, so client retries
        reach the same provider intent instead of creating a second charge.
        """
        async with db.begin():
            order = await OrderRepository.get_owned_order(db, order_id, actor.user_id)
            if (
                order is None
                or order.status != OrderStatus.PENDING.value
                or order.payment_status != PaymentStatus.PENDING.value
            ):
                raise NotPayable()

            intent = await gateway.create_payment_intent(
                amount_minor=to_minor_units(order.total),
                currency=order.currency,
                metadata={"orderId": str(order.id), "userId": str(order.user_id)},
                idempotency_key=f"order_{order.id}",
            )
            await OrderRepository.record_payment_intent(db, order.id, gateway.provider_name, intent.intent_id)

        logger.info("payment.intent_created", order_id=order_id, payment_intent=intent.intent_id)
        return intent.client_secret
