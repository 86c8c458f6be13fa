from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session
from typing import Optional

from ..core.database import get_db
from ..core.constants import EventAction
from ..core.rate_limit import rate_limit
from ..auth.authentication import get_optional_user, TokenIdentity
from ..audit.logger import AuditLog, get_audit_log, request_details
from .crud import create_feedback
from .schemas import FeedbackCreate, FeedbackCreated

router = APIRouter(prefix="/api/feedback", tags=["Feedback"])


@router.post(
    "",
    response_model=FeedbackCreated,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("feedback"))],
)
async def submit_feedback(
    request: Request,
    feedback: FeedbackCreate,
    current_user: Optional[TokenIdentity] = Depends(get_optional_user),
    db: Session = Depends(get_db),
    audit: AuditLog = Depends(get_audit_log),
):
    """Anonymous callers may leave feedback; a valid token links it to the user."""
    user_id = current_user.id if current_user else None
    db_feedback = create_feedback(db, feedback.rating, feedback.comment, feedback.name, user_id)

    audit.record(user_id, EventAction.FEEDBACK_SUBMITTED, "FEEDBACK", db_feedback.id, request_details(request))
    return {"message": "Feedback submitted successfully", "feedback_id": db_feedback.id}
