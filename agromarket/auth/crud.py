import uuid
from datetime import datetime, timedelta, timezone
from typing import Optional
from fastapi import status
from sqlalchemy.orm import Session
from .models import PasswordResetToken
from ..core import config
from ..core.errors import AppError
from ..user.models import User
from ..user.crud import set_password


def utcnow() -> datetime:
    # Naive UTC, matching the DateTime columns
    return datetime.now(timezone.utc).replace(tzinfo=None)


def create_reset_token(db: Session, user: User) -> PasswordResetToken:
    reset_token = PasswordResetToken(
        token=str(uuid.uuid4()),
        user_id=user.id,
        expires_at=utcnow() + timedelta(minutes=config.PASSWORD_RESET_TTL_MINUTES),
    )
    db.add(reset_token)
    db.commit()
    db.refresh(reset_token)
    return reset_token


def get_valid_reset_token(db: Session, token: str) -> Optional[PasswordResetToken]:
    """Return the token row if it exists and has not expired."""
    reset_token = db.query(PasswordResetToken).filter(PasswordResetToken.token == token).first()
    if not reset_token or reset_token.expires_at < utcnow():
        return None
    return reset_token


def consume_reset_token(db: Session, reset_token: PasswordResetToken, new_password: str) -> None:
    """
    Delete the token and update the password in one transaction.

    The delete is conditional on the token still being present and unexpired,
    so of two concurrent resets with the same token only one changes the
    password.

    Raises:
        AppError: 400 if the token was already used or has expired
    """
    user = reset_token.user
    try:
        deleted = (
            db.query(PasswordResetToken)
            .filter(PasswordResetToken.token == reset_token.token, PasswordResetToken.expires_at >= utcnow())
            .delete(synchronize_session=False)
        )
        if deleted != 1:
            raise AppError("Invalid or expired token", status.HTTP_400_BAD_REQUEST)
        set_password(db, user, new_password)
        db.commit()
    except Exception:
        db.rollback()
        raise
