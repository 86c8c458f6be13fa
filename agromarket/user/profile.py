import json
import logging
from typing import Any, Dict

from fastapi import status
from sqlalchemy.orm import Session

from ..core import config
from ..core.cache import get_cache, set_cache
from ..core.cloudinary_utils import validate_cloudinary_url
from ..core.errors import AppError
from .crud import get_user, update_user
from .models import User
from .schemas import UserProfile

logger = logging.getLogger(__name__)


def profile_cache_key(user_id: int) -> str:
    return f"user:{user_id}"


def to_profile(user: User) -> Dict[str, Any]:
    """Denormalized, JSON-safe projection of a user row (no password, no idNumber)."""
    return UserProfile.model_validate(user).model_dump(mode="json", by_alias=True)


async def cache_profile(cache, user: User) -> Dict[str, Any]:
    """Write the latest projection through to the cache and return it."""
    profile = to_profile(user)
    await set_cache(cache, profile_cache_key(user.id), json.dumps(profile), config.PROFILE_CACHE_TTL)
    return profile


async def get_profile(db: Session, cache, user_id: int) -> Dict[str, Any]:
    """
    Read-through profile lookup.

    A cache hit is returned verbatim (freshness is bounded by the TTL only);
    a miss or an unreachable cache falls back to the database and
    repopulates the cache.

    Raises:
        AppError: 404 if the user does not exist
    """
    cache_key = profile_cache_key(user_id)
    cached_profile = await get_cache(cache, cache_key)
    if cached_profile:
        try:
            return json.loads(cached_profile)
        except ValueError:
            logger.warning(f"Discarding unreadable cache entry {cache_key}")

    user = get_user(db, user_id)
    if not user:
        raise AppError("User not found", status.HTTP_404_NOT_FOUND)

    return await cache_profile(cache, user)


async def update_profile(db: Session, cache, user_id: int, changes: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate and apply a profile patch, then write through to the cache.

    Raises:
        AppError: 400 if no recognised field is supplied or the avatar URL is
            not a Cloudinary image upload URL; nothing is persisted then
    """
    if not changes:
        raise AppError("No valid fields provided for update.", status.HTTP_400_BAD_REQUEST)

    avatar_url = changes.get("avatar_url")
    if avatar_url is not None and not validate_cloudinary_url(avatar_url):
        raise AppError("Invalid Cloudinary URL", status.HTTP_400_BAD_REQUEST)

    user = update_user(db, user_id, changes)
    return await cache_profile(cache, user)
