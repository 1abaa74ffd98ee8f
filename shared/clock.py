from datetime import datetime, timedelta, timezone

from shared.config.settings import STOCK_RESERVATION_MINUTES


def utcnow() -> datetime:
    """Naive UTC timestamp; every DateTime column stores naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def reservation_expiry(now: datetime | None = None) -> datetime:
    return (now or utcnow()) + timedelta(minutes=STOCK_RESERVATION_MINUTES)
