"""Payment gateway port (abstract interface).

Order and webhook code talk to the payment provider only through this
contract, so the Stripe adapter can be swapped for the fake one in tests and
local development.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class PaymentIntentResult:
    """A provider-side authorization waiting for client confirmation."""

    intent_id: str
    client_secret: str
    status: str | None = None


@dataclass(frozen=True)
class RefundResult:
    refund_id: str
    status: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    provider_name: str = "unknown"

    @abstractmethod
    async def create_payment_intent(
        self,
        amount_minor: int,
        currency: str,
        metadata: dict[str, str],
        idempotency_key: str,
    ) -> PaymentIntentResult:
        """Ask the provider to authorize a charge of amount_minor."""
        ...

    @abstractmethod
    async def create_refund(
        self,
        payment_intent_id: str,
        idempotency_key: str | None = None,
    ) -> RefundResult:
        """Refund the full captured amount of a payment intent."""
        ...

    @abstractmethod
    def construct_event(self, payload: bytes, signature: str | None) -> dict:
        """Verify a webhook signature and return the decoded event.

        Raises GatewaySignatureInvalid when the payload is not authentic.
        """
        ...
