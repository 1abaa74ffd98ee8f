"""Configurable fake payment gateway for development and testing.

Simulates the provider without network calls: intents are keyed by their
idempotency key like the real API, refunds can be made to fail, and webhook
payloads are signed with an HMAC of the shared secret.
"""

import hashlib
import hmac
import json
from uuid import uuid4

from shared.errors import GatewayError, GatewaySignatureInvalid

from .port import PaymentGateway, PaymentIntentResult, RefundResult


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    provider_name = "stripe"

    def __init__(self, webhook_secret: str = "whsec_test") -> None:
        self.webhook_secret = webhook_secret
        self.should_succeed: bool = True
        self.failure_reason: str = "Card declined"
        self.calls: list[dict] = []
        self._intents: dict[str, PaymentIntentResult] = {}

    def configure(self, should_succeed: bool, failure_reason: str = "Card declined") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    @property
    def refunds(self) -> list[dict]:
        return [c for c in self.calls if c["method"] == "create_refund"]

    @property
    def intents_created(self) -> list[dict]:
        return [c for c in self.calls if c["method"] == "create_payment_intent"]

    async def create_payment_intent(
        self,
        amount_minor: int,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> PaymentIntentResult:
        self.calls.append({
            "method": "create_payment_intent",
            "amount_minor": amount_minor,
            "currency": currency,
            "metadata": dict(metadata),
            "idempotency_key": idempotency_key,
        })
        if not self.should_succeed:
            raise GatewayError(detail=self.failure_reason)

        # Same key, same intent: retries never create a second charge
        if idempotency_key in self._intents:
            return self._intents[idempotency_key]

        intent_id = f"pi_fake_{uuid4().hex[:12]}"
        intent = PaymentIntentResult(
            intent_id=intent_id,
            client_secret=f"{intent_id}_secret_{uuid4().hex[:8]}",
            status="requires_payment_method",
        )
        self._intents[idempotency_key] = intent
        return intent

    async def create_refund(
        self,
        payment_intent_id: str,
        idempotency_key: str | None = None,
    ) -> RefundResult:
        self.calls.append({
            "method": "create_refund",
            "payment_intent_id": payment_intent_id,
            "idempotency_key": idempotency_key,
        })
        if not self.should_succeed:
            raise GatewayError(detail=self.failure_reason)
        return RefundResult(refund_id=f"re_fake_{uuid4().hex[:12]}", status="succeeded")

    def sign(self, payload: bytes) -> str:
        return hmac.new(self.webhook_secret.encode(), payload, hashlib.sha256).hexdigest()

    def construct_event(self, payload: bytes, signature: str | None) -> dict:
        if not signature or not hmac.compare_digest(signature, self.sign(payload)):
            raise GatewaySignatureInvalid()
        try:
            return json.loads(payload)
        except ValueError as exc:
            raise GatewaySignatureInvalid(detail="payload is not valid JSON") from exc
