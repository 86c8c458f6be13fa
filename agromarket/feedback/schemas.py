from pydantic import Field
from typing import Optional
from ..core.schemas import CamelModel


class FeedbackCreate(CamelModel):
    name: Optional[str] = Field(None, max_length=100)
    rating: int = Field(..., ge=1, le=5)
    comment: str = Field(..., max_length=1000)


class FeedbackCreated(CamelModel):
    message: str
    feedback_id: int
