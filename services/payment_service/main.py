from fastapi import FastAPI

from shared.errors import install_error_handlers
from shared.observability import setup_observability

from .router import public_router, router

payment_app = FastAPI(title="Payment Webhooks", version="2.0.0")

# Structured logs, OTLP traces and /metrics
setup_observability(payment_app, "payment_service")

# A bad signature surfaces as GatewaySignatureInvalid -> 400
install_error_handlers(payment_app)

payment_app.include_router(public_router)
payment_app.include_router(router)
