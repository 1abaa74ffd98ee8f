from .setup import setup_observability
from .metrics import (
    ecomm_checkout_total,
    ecomm_checkout_duration_seconds,
    ecomm_webhook_events_total,
    ecomm_reservations_expired_total,
    ecomm_refunds_total,
    ecomm_stock_reconciliation_failures_total,
)
