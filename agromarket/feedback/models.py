from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, CheckConstraint, func
from ..core.database import Base


class Feedback(Base):
    __tablename__ = "feedback"
    __table_args__ = (
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_feedback_rating_range"),
    )

    id = Column(Integer, primary_key=True, index=True)
    # Anonymous feedback has no user
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    name = Column(String(100))
    rating = Column(Integer, nullable=False)
    comment = Column(String(1000), nullable=False)
    created_at = Column(DateTime, server_default=func.now())
