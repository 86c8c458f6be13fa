from fastapi import Depends, status
from fastapi.security import OAuth2PasswordBearer
from typing import Optional
from pydantic import BaseModel
from ..core.errors import AppError
from ..core.security import decode_access_token
import logging

# OAuth2 scheme for token extraction; a missing header is reported by us, not by FastAPI
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="api/auth/login", auto_error=False)

logger = logging.getLogger(__name__)


class TokenIdentity(BaseModel):
    id: int
    role: str


async def get_current_user(token: Optional[str] = Depends(oauth2_scheme)) -> TokenIdentity:
    """
    Resolve the caller's identity from the bearer token

    Args:
        token: JWT token from the Authorization header

    Returns:
        TokenIdentity: `{id, role}` bound into the token at login/signup

    Raises:
        AppError: 401 if the token is absent, malformed, tampered with or expired
    """
    if not token:
        raise AppError("No token provided", status.HTTP_401_UNAUTHORIZED)

    payload = decode_access_token(token)
    if payload is None:
        raise AppError("Invalid or expired token", status.HTTP_401_UNAUTHORIZED)

    return TokenIdentity(id=payload["id"], role=payload["role"])


async def get_optional_user(token: Optional[str] = Depends(oauth2_scheme)) -> Optional[TokenIdentity]:
    """Same verification as `get_current_user`, but anonymous or invalid tokens yield None."""
    if not token:
        return None
    payload = decode_access_token(token)
    if payload is None:
        return None
    return TokenIdentity(id=payload["id"], role=payload["role"])


def restrict_to(*roles: str):
    """
    Dependency factory allowing only the given roles

    Returns:
        function: Dependency returning the caller's identity
    """
    allowed = {getattr(role, "value", role) for role in roles}

    async def _restrict_to(current_user: TokenIdentity = Depends(get_current_user)) -> TokenIdentity:
        if current_user.role not in allowed:
            logger.warning(f"User {current_user.id} with role {current_user.role} tried to access a resource restricted to {sorted(allowed)}")
            raise AppError("Unauthorized", status.HTTP_403_FORBIDDEN)
        return current_user

    return _restrict_to
