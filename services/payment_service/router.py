from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from shared.config.database import get_db

from .gateway import PaymentGateway, get_gateway
from .schemas import WebhookAck
from .webhook import WebhookReconciler

router = APIRouter()
public_router = APIRouter()


@public_router.get("/health", include_in_schema=False)
async def health_check():
    return {"service": "payment", "status": "running"}


# No bearer token: the provider authenticates with the signature header
@router.post("/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    db: AsyncSession = Depends(get_db),
    gateway: PaymentGateway = Depends(get_gateway),
):
    payload = await request.body()
    event = gateway.construct_event(payload, stripe_signature)
    await WebhookReconciler.handle_event(db, event, gateway)
    return WebhookAck()
