from typing import Optional
from fastapi import status
from sqlalchemy.orm import Session
from .models import Feedback
from ..core.errors import AppError


def create_feedback(db: Session, rating: int, comment: str, name: Optional[str] = None,
                    user_id: Optional[int] = None) -> Feedback:
    if not 1 <= rating <= 5:
        raise AppError("Rating must be between 1 and 5", status.HTTP_400_BAD_REQUEST)
    if len(comment) > 1000:
        raise AppError("Comment must be at most 1000 characters", status.HTTP_400_BAD_REQUEST)

    db_feedback = Feedback(user_id=user_id, name=name, rating=rating, comment=comment)
    db.add(db_feedback)
    db.commit()
    db.refresh(db_feedback)
    return db_feedback
