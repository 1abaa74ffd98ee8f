"""
Webhook reconciler: applies verified provider events to orders.

Stock leaves the shelf only here, when a payment is confirmed, and comes back
only here, when the provider confirms a refund. Both paths claim the order
with a guarded UPDATE first (see services.order_service.state_machine), so a
redelivered event or a racing sweep finds the claim taken and does nothing.

Once the signature is valid the provider always gets a 2xx: failures are
logged, counted and swallowed, never surfaced.
"""
from typing import Optional

import structlog
from sqlalchemy.ext.asyncio import AsyncSession

from services.order_service import state_machine
from services.order_service.repository import OrderRepository
from services.product_service.ledger import StockLedger
from shared.observability import (
    ecomm_refunds_total,
    ecomm_stock_reconciliation_failures_total,
    ecomm_webhook_events_total,
)

from .gateway import PaymentGateway

logger = structlog.get_logger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
CHARGE_REFUNDED = "charge.refunded"


class StockUnavailable(Exception):
    def __init__(self, order_id: int, product_id: int, quantity: int):
        self.order_id = order_id
        self.product_id = product_id
        self.quantity = quantity
        super().__init__(f"order {order_id}: product {product_id} short of {quantity}")


def _order_id_from_metadata(intent: dict) -> Optional[int]:
    raw = (intent.get("metadata") or {}).get("orderId")
    try:
        return int(raw)
    except (TypeError, ValueError):
        return None


class WebhookReconciler:

    @staticmethod
    async def handle_event(db: AsyncSession, event: dict, gateway: PaymentGateway) -> str:
        """Dispatch one verified event; returns the outcome label."""
        if not isinstance(event, dict):
            logger.warning("webhook.ignored", reason="payload is not an object")
            ecomm_webhook_events_total.labels(event_type="unknown", outcome="ignored").inc()
            return "ignored"

        event_type = event.get("type") or "unknown"
        log = logger.bind(event_id=event.get("id"), event_type=event_type)

        if event_type == PAYMENT_SUCCEEDED:
            handler = WebhookReconciler.payment_succeeded
        elif event_type == CHARGE_REFUNDED:
            handler = WebhookReconciler.charge_refunded
        else:
            log.info("webhook.ignored")
            ecomm_webhook_events_total.labels(event_type=event_type, outcome="ignored").inc()
            return "ignored"

        try:
            outcome = await handler(db, event, gateway)
        except Exception:
            log.exception("webhook.failed")
            outcome = "failed"

        log.info("webhook.processed", outcome=outcome)
        ecomm_webhook_events_total.labels(event_type=event_type, outcome=outcome).inc()
        return outcome

    @staticmethod
    async def payment_succeeded(db: AsyncSession, event: dict, gateway: PaymentGateway) -> str:
        """Mark the order paid and take its stock, or refund if stock ran out.

        The claim and every decrement share one transaction: a short line rolls
        all of it back, leaving the order pending/pending and stock untouched,
        and the charge is refunded in full.
        """
        intent = event["data"]["object"]
        event_id = event["id"]
        order_id = _order_id_from_metadata(intent)
        if order_id is None:
            return "orphaned"

        try:
            async with db.begin():
                order = await OrderRepository.get_order(db, order_id)
                if order is None:
                    return "orphaned"
                if order.payment_last_event_id == event_id:
                    return "duplicate"

                claimed = await state_machine.mark_paid(
                    db,
                    order.id,
                    charge_id=intent.get("latest_charge"),
                    event_id=event_id,
                )
                if not claimed:
                    # Already paid, or cancelled by the sweep or the customer
                    logger.warning(
                        "webhook.payment_not_applied",
                        order_id=order.id,
                        status=order.status,
                        payment_status=order.payment_status,
                    )
                    return "skipped"

                for item in order.items:
                    if not await StockLedger.try_reserve(db, item.product_id, item.quantity):
                        raise StockUnavailable(order.id, item.product_id, item.quantity)
        except StockUnavailable as exc:
            ecomm_stock_reconciliation_failures_total.inc()
            logger.error(
                "webhook.stock_unavailable",
                order_id=exc.order_id,
                product_id=exc.product_id,
                quantity=exc.quantity,
            )
            await gateway.create_refund(
                intent["id"],
                idempotency_key=f"refund_intent_{intent['id']}",
            )
            ecomm_refunds_total.labels(reason="stock_unavailable").inc()
            return "refunded"

        logger.info("order.paid", order_id=order_id, payment_intent=intent.get("id"))
        return "applied"

    @staticmethod
    async def charge_refunded(db: AsyncSession, event: dict, gateway: PaymentGateway) -> str:
        """Provider confirmed a refund: mark the order refunded and restock once."""
        charge = event["data"]["object"]
        intent_id = charge.get("payment_intent")
        if not intent_id:
            return "orphaned"

        async with db.begin():
            order = await OrderRepository.get_by_payment_intent(db, intent_id)
            if order is None:
                return "orphaned"
            if order.stock_released:
                return "duplicate"
            if not await state_machine.mark_refunded(db, order.id, event_id=event["id"]):
                logger.warning(
                    "webhook.refund_not_applied",
                    order_id=order.id,
                    status=order.status,
                    payment_status=order.payment_status,
                )
                return "skipped"

            for item in order.items:
                await StockLedger.release(db, item.product_id, item.quantity)

        logger.info("order.refunded", order_id=order.id, payment_intent=intent_id)
        return "applied"
