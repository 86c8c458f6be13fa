from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session
import logging

from ..core.database import get_db
from ..core.cache import get_cache_client
from ..core.constants import EventAction, Role
from ..core.rate_limit import rate_limit
from ..auth.authentication import restrict_to, TokenIdentity
from ..audit.logger import AuditLog, get_audit_log, request_details
from ..user.crud import get_user
from ..user.profile import cache_profile
from .crud import submit_rating, get_farmer_ratings
from .schemas import RatingCreate, RatingResponse, FarmerRatings

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/ratings", tags=["Ratings"])


@router.post(
    "",
    response_model=RatingResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit("general"))],
)
async def create_rating(
    request: Request,
    rating_data: RatingCreate,
    current_user: TokenIdentity = Depends(restrict_to(Role.BUYER)),
    db: Session = Depends(get_db),
    cache=Depends(get_cache_client),
    audit: AuditLog = Depends(get_audit_log),
):
    rating = submit_rating(
        db,
        rater_id=current_user.id,
        farmer_id=rating_data.farmer_id,
        product_quality=rating_data.product_quality,
        response_time=rating_data.response_time,
        communication=rating_data.communication,
        friendliness=rating_data.friendliness,
    )

    # Keep the farmer's cached profile in step with the new average
    farmer = get_user(db, rating.farmer_id)
    if farmer:
        await cache_profile(cache, farmer)

    audit.record(current_user.id, EventAction.RATING_SUBMITTED, "RATING", rating.id, request_details(request))
    return rating


@router.get("/farmer/{farmer_id}", response_model=FarmerRatings)
async def read_farmer_ratings(farmer_id: int, db: Session = Depends(get_db)):
    return get_farmer_ratings(db, farmer_id)
