from .jwt_handler import create_access_token, verify_access_token
from .dependencies import Actor, ADMIN_ROLES, get_current_actor
from .rate_limiter import limiter, caller_key

__all__ = [
    "create_access_token",
    "verify_access_token",
    "Actor",
    "ADMIN_ROLES",
    "get_current_actor",
    "limiter",
    "caller_key",
]
