from prometheus_client import Counter, Histogram

# Business Metrics
ecomm_checkout_total = Counter(
    "ecomm_checkout_total",
    "Total checkouts processed",
    ["kind", "status"] # kind: 'cart' | 'single'; status: 'success' | 'failed'
)

ecomm_checkout_duration_seconds = Histogram(
    "ecomm_checkout_duration_seconds",
    "Checkout duration in seconds"
)

ecomm_webhook_events_total = Counter(
    "ecomm_webhook_events_total",
    "Payment provider webhook events received",
    ["event_type", "outcome"] # outcome: 'applied', 'duplicate', 'orphaned', 'failed', 'ignored'
)

ecomm_reservations_expired_total = Counter(
    "ecomm_reservations_expired_total",
    "Unpaid orders cancelled by the reservation sweep"
)

ecomm_refunds_total = Counter(
    "ecomm_refunds_total",
    "Refunds requested from the payment provider",
    ["reason"] # 'customer_cancel', 'stock_unavailable'
)

ecomm_stock_reconciliation_failures_total = Counter(
    "ecomm_stock_reconciliation_failures_total",
    "Paid orders whose stock could not be reserved when payment was confirmed"
)
