import logging
from typing import Dict, Optional

from fastapi import Request, status
from limits import parse
from limits.aio.strategies import FixedWindowRateLimiter
from limits.storage import storage_from_string

from . import config
from .errors import AppError
from .security import bearer_token, decode_access_token

logger = logging.getLogger(__name__)

RATE_LIMIT_MESSAGE = "Too many requests, please try again later"
RATE_LIMIT_MESSAGES = {
    "feedback": "Too many feedback submissions, please try again later",
}


def async_storage_uri(storage_uri: str) -> str:
    """Map a plain `limits` URI ("memory://", "redis://...") to its asyncio storage."""
    if storage_uri.startswith("async+"):
        return storage_uri
    return f"async+{storage_uri}"


class RateLimiter:
    """
    Fixed-window request counters keyed by caller identity.

    Args:
        storage_uri: `limits` storage URI, e.g. "memory://" or "redis://host:6379"
        limits: Mapping of limiter name to a rate string such as "5 per 15 minutes"
    """

    def __init__(self, storage_uri: Optional[str] = None, limits: Optional[Dict[str, str]] = None):
        uri = async_storage_uri(storage_uri or config.RATE_LIMIT_STORAGE_URI)
        options = {"implementation": "redispy"} if uri.startswith("async+redis") else {}
        self.storage = storage_from_string(uri, **options)
        self.strategy = FixedWindowRateLimiter(self.storage)
        limits = limits or {
            "auth": config.AUTH_RATE_LIMIT,
            "feedback": config.FEEDBACK_RATE_LIMIT,
            "general": config.GENERAL_RATE_LIMIT,
        }
        self.limits = {name: parse(value) for name, value in limits.items()}

    async def hit(self, name: str, key: str) -> bool:
        """Count one request; False once the window's ceiling is exceeded."""
        return await self.strategy.hit(self.limits[name], name, key)

    async def reset(self) -> None:
        await self.storage.reset()


def caller_key(request: Request) -> str:
    """Authenticated callers are counted per user id, everyone else per client IP."""
    token = bearer_token(request.headers.get("Authorization"))
    if token:
        payload = decode_access_token(token)
        if payload:
            return f"user:{payload['id']}"
    host = request.client.host if request.client else "unknown"
    return f"ip:{host}"


def rate_limit(name: str):
    """Dependency factory enforcing the named limiter before the endpoint runs."""
    message = RATE_LIMIT_MESSAGES.get(name, RATE_LIMIT_MESSAGE)

    async def _rate_limit(request: Request) -> None:
        limiter: RateLimiter = request.app.state.rate_limiter
        key = caller_key(request)
        if not await limiter.hit(name, key):
            logger.warning(f"Rate limit '{name}' exceeded for {key} on {request.url.path}")
            raise AppError(message, status.HTTP_429_TOO_MANY_REQUESTS)

    return _rate_limit
