from fastapi import FastAPI

from shared.errors import install_error_handlers
from shared.observability import setup_observability
from shared.security import limiter

from .models import Order  # Import to register with Base
from .router import public_router, router

order_app = FastAPI(title="Order Service", version="2.0.0")

# --- OBSERVABILITY BOOTSTRAP ---
setup_observability(order_app, "order_service")

# --- ERRORS & SECURITY ---
# Validation, auth and rate-limit failures share the {success, error} body
install_error_handlers(order_app)
order_app.state.limiter = limiter

order_app.include_router(public_router)
order_app.include_router(router)
