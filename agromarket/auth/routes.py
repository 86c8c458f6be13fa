from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
import logging

from ..core import config
from ..core.database import get_db
from ..core.constants import EventAction, PASSWORD_RESET_MESSAGE
from ..core.errors import AppError
from ..core.mailer import get_mailer
from ..core.rate_limit import rate_limit
from ..core.security import create_access_token, verify_password
from ..audit.logger import AuditLog, get_audit_log, request_details
from ..user.crud import get_user_by_email, create_user
from ..user.profile import to_profile
from .crud import create_reset_token, get_valid_reset_token, consume_reset_token
from .schemas import Login, Signup, ForgotPassword, ResetPassword, AuthResponse, MessageResponse

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/auth",
    tags=["Authentication"],
    dependencies=[Depends(rate_limit("auth"))],
)


@router.post("/login", response_model=AuthResponse)
async def login(
    login_data: Login,
    request: Request,
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    user = get_user_by_email(db, login_data.email)
    if not user or not await run_in_threadpool(verify_password, login_data.password, user.password):
        raise AppError("Invalid email or password", status.HTTP_401_UNAUTHORIZED)

    token = create_access_token(user.id, user.role)
    audit.record(user.id, EventAction.USER_LOGIN, "USER", user.id, request_details(request))

    return {"user": to_profile(user), "token": token}


@router.post("/signup", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
async def signup(
    signup_data: Signup,
    request: Request,
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    user = await run_in_threadpool(create_user, db, signup_data.to_user_data())
    token = create_access_token(user.id, user.role)
    audit.record(user.id, EventAction.USER_REGISTERED, "USER", user.id, request_details(request))

    return {"user": to_profile(user), "token": token}


@router.post("/request-password-reset", response_model=MessageResponse)
async def request_password_reset(
    reset_request: ForgotPassword,
    request: Request,
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
    mailer=Depends(get_mailer),
):
    """
    Start a password reset.

    The response is the same whether or not the email is registered, so the
    endpoint cannot be used to enumerate accounts.
    """
    user = get_user_by_email(db, reset_request.email)
    if not user:
        return {"message": PASSWORD_RESET_MESSAGE}

    reset_token = create_reset_token(db, user)
    reset_link = f"{config.FRONTEND_URL}/reset-password?token={reset_token.token}"

    try:
        await mailer.send(
            user.email,
            "Password Reset Request",
            f"Click this link to reset your password: {reset_link}. "
            f"This link is valid for {config.PASSWORD_RESET_TTL_MINUTES} minutes.",
        )
    except AppError:
        # The token is left to expire
        audit.record(user.id, EventAction.PASSWORD_RESET_REQUESTED, "USER", user.id,
                     request_details(request, error="Email send failed"))
        raise AppError(
            "Failed to send password reset email. Please try again later.",
            status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    audit.record(user.id, EventAction.PASSWORD_RESET_REQUESTED, "USER", user.id, request_details(request))
    return {"message": PASSWORD_RESET_MESSAGE}


@router.post("/reset-password", response_model=MessageResponse)
async def reset_password(
    reset_data: ResetPassword,
    request: Request,
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    reset_token = get_valid_reset_token(db, reset_data.token)
    if not reset_token:
        raise AppError("Invalid or expired token", status.HTTP_400_BAD_REQUEST)

    user_id = reset_token.user_id
    try:
        await run_in_threadpool(consume_reset_token, db, reset_token, reset_data.new_password)
    except AppError:
        raise
    except Exception as e:
        logger.error(f"Failed to reset password for user {user_id}: {str(e)}")
        audit.record(user_id, EventAction.PASSWORD_RESET, "USER", user_id,
                     request_details(request, error="Transaction failed"))
        raise AppError("Failed to reset password. Please try again.", status.HTTP_500_INTERNAL_SERVER_ERROR)

    audit.record(user_id, EventAction.PASSWORD_RESET, "USER", user_id, request_details(request))
    return {"message": "Password has been reset successfully."}
