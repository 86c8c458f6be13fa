import logging
from decimal import Decimal
from typing import Optional, Dict, Any

from fastapi import status
from sqlalchemy import select, update, func, literal_column, Integer, Numeric
from sqlalchemy.orm import Session

from ..core.constants import Role
from ..core.errors import AppError
from ..user.models import User
from .models import Rating

logger = logging.getLogger(__name__)


def validate_scores(*scores) -> None:
    """Every sub-score must be an integer between 1 and 5."""
    for score in scores:
        if isinstance(score, bool) or not isinstance(score, int) or not 1 <= score <= 5:
            raise AppError("Scores must be between 1 and 5", status.HTTP_400_BAD_REQUEST)


def average_rating_expression(farmer_id: int):
    """
    Scalar subquery computing a farmer's average in the database:
    the mean over all ratings of (sum of the four sub-scores / 4), rounded
    half up to 2 decimals. Evaluated in integer hundredths, so no dialect
    rounds an intermediate decimal first. No ratings gives NULL.
    """
    score_total = Rating.product_quality + Rating.response_time + Rating.communication + Rating.friendliness
    total = func.sum(score_total)
    count = func.count(Rating.id)
    # round(total / (4 * count), 2) == floor((200 * total + 4 * count) / (8 * count)) / 100
    hundredths = (total * 200 + count * 4) // func.nullif(count * 8, 0, type_=Integer)
    return (
        select(hundredths / literal_column("100.0", Numeric(10, 2)))
        .where(Rating.farmer_id == farmer_id)
        .scalar_subquery()
    )


def recompute_average_rating(db: Session, farmer_id: int) -> Optional[Decimal]:
    """
    Recompute and store a farmer's average from every stored rating.

    A single UPDATE with the aggregate as a subquery, so the value written is
    computed by the database from the rows it holds at that moment. The
    caller owns the transaction.
    """
    db.execute(
        update(User)
        .where(User.id == farmer_id)
        .values(average_rating=average_rating_expression(farmer_id))
        .execution_options(synchronize_session=False)
    )
    return db.execute(select(User.average_rating).where(User.id == farmer_id)).scalar_one_or_none()


def lock_farmer(db: Session, farmer_id: int) -> User:
    """
    Load the rated farmer with a row lock, serialising concurrent rating
    submissions for the same farmer until the transaction ends.

    Raises:
        AppError: 404 if no farmer has this id
    """
    farmer = (
        db.query(User)
        .filter(User.id == farmer_id, User.role == Role.FARMER.value)
        .with_for_update()
        .first()
    )
    if not farmer:
        raise AppError("Farmer not found", status.HTTP_404_NOT_FOUND)
    return farmer


def submit_rating(
    db: Session,
    rater_id: int,
    farmer_id: int,
    product_quality: int,
    response_time: int,
    communication: int,
    friendliness: int,
) -> Rating:
    """
    Store a buyer's rating of a farmer and refresh the farmer's average.

    Scores are validated before anything is written. The rating insert and
    the average update commit together, so a successful return means the
    new average already includes this rating.

    Raises:
        AppError: 400 on an out-of-range score, 404 if the farmer is unknown
    """
    validate_scores(product_quality, response_time, communication, friendliness)

    try:
        farmer = lock_farmer(db, farmer_id)

        rating = Rating(
            rater_id=rater_id,
            farmer_id=farmer_id,
            product_quality=product_quality,
            response_time=response_time,
            communication=communication,
            friendliness=friendliness,
        )
        db.add(rating)
        db.flush()

        average = recompute_average_rating(db, farmer_id)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(rating)
    db.refresh(farmer)
    logger.info(f"Rating {rating.id} stored for farmer {farmer_id}; average is now {average}")
    return rating


def get_farmer_ratings(db: Session, farmer_id: int) -> Dict[str, Any]:
    farmer = db.query(User).filter(User.id == farmer_id).first()
    ratings = (
        db.query(Rating)
        .filter(Rating.farmer_id == farmer_id)
        .order_by(Rating.created_at.desc(), Rating.id.desc())
        .all()
    )
    return {"farmer": farmer, "ratings": ratings}
