from fastapi import APIRouter, Depends, Request, UploadFile, File, status
from sqlalchemy.orm import Session
import logging

from ..core import config
from ..core.database import get_db
from ..core.cache import get_cache_client
from ..core.cloudinary_utils import upload_image, delete_image, extract_public_id_from_url
from ..core.constants import EventAction
from ..core.errors import AppError
from ..core.rate_limit import rate_limit
from ..auth.authentication import get_current_user, TokenIdentity
from ..audit.logger import AuditLog, get_audit_log, request_details
from .crud import get_user
from .profile import get_profile, update_profile
from .schemas import UserProfile, ProfileUpdate

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/user", tags=["Users"])

MAX_AVATAR_SIZE = 2 * 1024 * 1024  # 2MB
ALLOWED_AVATAR_EXTENSIONS = ("jpg", "jpeg", "png", "gif", "webp")


async def _apply_update(
    request: Request,
    db: Session,
    cache,
    audit: AuditLog,
    user_id: int,
    changes: dict,
) -> dict:
    try:
        profile = await update_profile(db, cache, user_id, changes)
    except AppError:
        raise
    except Exception as e:
        db.rollback()
        logger.error(f"Failed to update profile for user {user_id}: {str(e)}")
        audit.record(user_id, EventAction.PROFILE_UPDATED, "USER", user_id,
                     request_details(request, error="Update failed"))
        raise AppError("Failed to update profile.", status.HTTP_500_INTERNAL_SERVER_ERROR)

    audit.record(user_id, EventAction.PROFILE_UPDATED, "USER", user_id,
                 request_details(request, updatedFields=sorted(changes)))
    return profile


@router.get("/profile", response_model=UserProfile, dependencies=[Depends(rate_limit("general"))])
async def read_profile(
    current_user: TokenIdentity = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache=Depends(get_cache_client),
):
    return await get_profile(db, cache, current_user.id)


@router.patch("/profile", response_model=UserProfile, dependencies=[Depends(rate_limit("general"))])
async def patch_profile(
    request: Request,
    profile_update: ProfileUpdate,
    current_user: TokenIdentity = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache=Depends(get_cache_client),
    audit: AuditLog = Depends(get_audit_log),
):
    return await _apply_update(request, db, cache, audit, current_user.id, profile_update.changes())


@router.post("/profile/avatar", response_model=UserProfile, dependencies=[Depends(rate_limit("general"))])
async def upload_avatar(
    request: Request,
    file: UploadFile = File(...),
    current_user: TokenIdentity = Depends(get_current_user),
    db: Session = Depends(get_db),
    cache=Depends(get_cache_client),
    audit: AuditLog = Depends(get_audit_log),
):
    logger.info(f"Avatar upload request for user {current_user.id}")

    file_extension = (file.filename or "").rsplit(".", 1)[-1].lower()
    if file_extension not in ALLOWED_AVATAR_EXTENSIONS:
        raise AppError(f"File must be one of: {', '.join(ALLOWED_AVATAR_EXTENSIONS)}", status.HTTP_400_BAD_REQUEST)

    content = await file.read()
    if len(content) > MAX_AVATAR_SIZE:
        raise AppError("File too large. Maximum size is 2MB.", status.HTTP_400_BAD_REQUEST)

    user = get_user(db, current_user.id)
    if not user:
        raise AppError("User not found", status.HTTP_404_NOT_FOUND)
    old_public_id = extract_public_id_from_url(user.avatar_url)

    try:
        upload_result = await upload_image(content, file.filename, file.content_type,
                                           folder=config.CLOUDINARY_AVATAR_FOLDER)
    except ValueError as e:
        logger.error(f"Avatar upload failed for user {current_user.id}: {str(e)}")
        if not (file.content_type or "").startswith("image/"):
            raise AppError(str(e), status.HTTP_400_BAD_REQUEST)
        raise AppError("Failed to upload avatar", status.HTTP_500_INTERNAL_SERVER_ERROR)

    profile = await _apply_update(request, db, cache, audit, current_user.id,
                                  {"avatar_url": upload_result["secure_url"]})

    if old_public_id and old_public_id != upload_result["public_id"]:
        try:
            await delete_image(old_public_id)
        except Exception as e:
            # The new avatar is already saved; a stale image is only logged
            logger.error(f"Failed to delete old avatar {old_public_id}: {str(e)}")

    return profile
