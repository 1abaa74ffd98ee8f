from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from shared.config.settings import RATE_LIMIT_ENABLED
from .jwt_handler import verify_access_token


def caller_key(request: Request) -> str:
    """Bucket checkout traffic per account, or per client IP without a valid token.

    slowapi evaluates the key before FastAPI dependencies run, so the token
    is decoded here rather than read from request.state.
    """
    scheme, _, token = request.headers.get("Authorization", "").partition(" ")
    if scheme.lower() == "bearer" and token:
        claims = verify_access_token(token)
        if claims and claims.get("sub"):
            return f"user:{claims['sub']}"
    return f"ip:{get_remote_address(request)}"


# Limits are declared per route with @limiter.limit(CHECKOUT_RATE_LIMIT)
limiter = Limiter(key_func=caller_key, enabled=RATE_LIMIT_ENABLED)
