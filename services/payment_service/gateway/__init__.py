"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- StripeGateway in production (PAYMENT_GATEWAY=stripe, the default)
- FakeGateway for development and testing (PAYMENT_GATEWAY=fake)
"""

from shared.config import settings

from .fake_adapter import FakeGateway
from .port import PaymentGateway, PaymentIntentResult, RefundResult
from .stripe_adapter import StripeGateway

_current_gateway: PaymentGateway | None = None


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway, building it from settings on first use."""
    global _current_gateway
    if _current_gateway is None:
        if settings.PAYMENT_GATEWAY == "fake":
            _current_gateway = FakeGateway(webhook_secret=settings.STRIPE_WEBHOOK_SECRET or "whsec_test")
        else:
            _current_gateway = StripeGateway(
                api_key=settings.STRIPE_SECRET_KEY,
                webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
            )
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None


__all__ = [
    "FakeGateway",
    "PaymentGateway",
    "PaymentIntentResult",
    "RefundResult",
    "StripeGateway",
    "get_gateway",
    "reset_gateway",
    "set_gateway",
]
