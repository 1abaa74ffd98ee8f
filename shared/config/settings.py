"""
Runtime configuration for the order engine.

Everything is read from the environment, optionally seeded from a .env file,
once at import time.
"""
import os

from dotenv import load_dotenv

load_dotenv()

# --- Payment provider ---
PAYMENT_GATEWAY = os.getenv("PAYMENT_GATEWAY", "stripe")  # stripe | fake
STRIPE_SECRET_KEY = os.getenv("STRIPE_SECRET_KEY", "")
STRIPE_WEBHOOK_SECRET = os.getenv("STRIPE_WEBHOOK_SECRET", "")
STRIPE_PUBLIC_KEY = os.getenv("STRIPE_PUBLIC_KEY", "")

# --- Reservation window ---
STOCK_RESERVATION_MINUTES = int(os.getenv("STOCK_RESERVATION_MINUTES", "15"))
ORDER_TIMEOUT_SWEEP_SECONDS = int(os.getenv("ORDER_TIMEOUT_SWEEP_SECONDS", "300"))
ORDER_TIMEOUT_SWEEP_ENABLED = os.getenv("ORDER_TIMEOUT_SWEEP_ENABLED", "true").lower() == "true"

# --- Rate limiting ---
RATE_LIMIT_ENABLED = os.getenv("RATE_LIMIT_ENABLED", "true").lower() == "true"
CHECKOUT_RATE_LIMIT = os.getenv("CHECKOUT_RATE_LIMIT", "10/minute")

# --- Listing ---
DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
