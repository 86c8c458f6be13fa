from sqlalchemy import Column, Integer, DateTime, ForeignKey, CheckConstraint, func
from ..core.database import Base

SCORE_FIELDS = ("product_quality", "response_time", "communication", "friendliness")


class Rating(Base):
    __tablename__ = "ratings"
    __table_args__ = tuple(
        CheckConstraint(f"{field} BETWEEN 1 AND 5", name=f"ck_ratings_{field}_range")
        for field in SCORE_FIELDS
    )

    id = Column(Integer, primary_key=True, index=True)
    rater_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    farmer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    product_quality = Column(Integer, nullable=False)
    response_time = Column(Integer, nullable=False)
    communication = Column(Integer, nullable=False)
    friendliness = Column(Integer, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
