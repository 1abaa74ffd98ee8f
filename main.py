from fastapi import FastAPI

from shared.config.database import create_all
from shared.config.settings import ORDER_TIMEOUT_SWEEP_ENABLED

# IMPORTANT: import models so they register with Base
from services.address_service import models as address_models
from services.cart_service import models as cart_models
from services.product_service import models as product_models
from services.order_service import models as order_models

from services.order_service.main import order_app
from services.order_service.reaper import ReservationReaper
from services.payment_service.main import payment_app

app = FastAPI(title="Order Engine")

reaper = ReservationReaper()


@app.on_event("startup")
async def startup_event():
    await create_all()
    if ORDER_TIMEOUT_SWEEP_ENABLED:
        reaper.start()


@app.on_event("shutdown")
async def shutdown_event():
    await reaper.stop()


app.mount("/orders", order_app)
app.mount("/webhooks", payment_app)
