from pydantic import Field
from typing import List, Optional
from datetime import datetime
from ..core.schemas import CamelModel
from ..user.schemas import FarmerSummary


class RatingCreate(CamelModel):
    farmer_id: int = Field(..., gt=0)
    product_quality: int = Field(..., ge=1, le=5)
    response_time: int = Field(..., ge=1, le=5)
    communication: int = Field(..., ge=1, le=5)
    friendliness: int = Field(..., ge=1, le=5)


class RatingResponse(CamelModel):
    id: int
    rater_id: int
    farmer_id: int
    product_quality: int
    response_time: int
    communication: int
    friendliness: int
    created_at: Optional[datetime] = None


class RatingScores(CamelModel):
    product_quality: int
    response_time: int
    communication: int
    friendliness: int
    created_at: Optional[datetime] = None


class FarmerRatings(CamelModel):
    farmer: Optional[FarmerSummary] = None
    ratings: List[RatingScores] = []
