"""
Caller identity for the order API.

Accounts and sessions live in another system; here we only verify the bearer
token it issued and read the user id (`sub`) and role (`role`) claims.
"""
from dataclasses import dataclass

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import OAuth2PasswordBearer
from .jwt_handler import verify_access_token

ADMIN_ROLES = frozenset({"admin", "superadmin"})
KNOWN_ROLES = frozenset({"owner", "assistant"}) | ADMIN_ROLES

# Defines the expected header format (Bearer <token>)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="auth/login", auto_error=False)


@dataclass(frozen=True)
class Actor:
    user_id: int
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


async def get_current_actor(request: Request, token: str = Depends(oauth2_scheme)) -> Actor:
    """Dependency to validate the JWT and return the calling account."""
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if not token:
        raise credentials_exception

    payload = verify_access_token(token)
    if payload is None:
        raise credentials_exception

    sub = payload.get("sub")
    role = payload.get("role", "owner")
    if sub is None or role not in KNOWN_ROLES:
        raise credentials_exception
    try:
        user_id = int(sub)
    except (TypeError, ValueError):
        raise credentials_exception

    request.state.user_id = user_id
    return Actor(user_id=user_id, role=role)
