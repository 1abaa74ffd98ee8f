"""Stripe payment gateway adapter.

The stripe SDK is synchronous, so every network call runs in a worker thread
to keep the event loop free.
"""

import asyncio
import json

import stripe
import structlog

from shared.errors import GatewayError, GatewaySignatureInvalid

from .port import PaymentGateway, PaymentIntentResult, RefundResult

logger = structlog.get_logger(__name__)


class StripeGateway(PaymentGateway):
    """Production Stripe gateway adapter."""

    provider_name = "stripe"

    def __init__(self, api_key: str, webhook_secret: str) -> None:
        self.api_key = api_key
        self.webhook_secret = webhook_secret

    async def create_payment_intent(
        self,
        amount_minor: int,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> PaymentIntentResult:
        try:
            intent = await asyncio.to_thread(
                stripe.PaymentIntent.create,
                amount=amount_minor,
                currency=currency.lower(),
                automatic_payment_methods={"enabled": True},
                metadata=metadata,
                idempotency_key=idempotency_key,
                api_key=self.api_key,
            )
        except stripe.StripeError as exc:
            logger.error("stripe.intent_failed", error=str(exc), idempotency_key=idempotency_key)
            raise GatewayError(detail=str(exc)) from exc
        return PaymentIntentResult(
            intent_id=intent.id,
            client_secret=intent.client_secret,
            status=intent.status,
        )

    async def create_refund(
        self,
        payment_intent_id: str,
        idempotency_key: str | None = None,
    ) -> RefundResult:
        params = {"payment_intent": payment_intent_id, "api_key": self.api_key}
        if idempotency_key:
            params["idempotency_key"] = idempotency_key
        try:
            refund = await asyncio.to_thread(stripe.Refund.create, **params)
        except stripe.StripeError as exc:
            logger.error("stripe.refund_failed", error=str(exc), payment_intent=payment_intent_id)
            raise GatewayError(detail=str(exc)) from exc
        return RefundResult(refund_id=refund.id, status=refund.status)

    def construct_event(self, payload: bytes, signature: str | None) -> dict:
        if not signature:
            raise GatewaySignatureInvalid(detail="missing Stripe-Signature header")
        try:
            stripe.WebhookSignature.verify_header(
                payload.decode("utf-8"),
                signature,
                self.webhook_secret,
                stripe.Webhook.DEFAULT_TOLERANCE,
            )
            return json.loads(payload)
        except stripe.SignatureVerificationError as exc:
            raise GatewaySignatureInvalid(detail=str(exc)) from exc
        except ValueError as exc:
            raise GatewaySignatureInvalid(detail="payload is not valid JSON") from exc
