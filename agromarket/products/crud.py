from typing import List
from sqlalchemy.orm import Session, joinedload
from .models import Product

FEATURED_PRODUCTS_LIMIT = 5


def get_featured_products(db: Session, limit: int = FEATURED_PRODUCTS_LIMIT) -> List[Product]:
    """The most recently listed products, with their owners loaded."""
    return (
        db.query(Product)
        .options(joinedload(Product.user))
        .order_by(Product.created_at.desc(), Product.id.desc())
        .limit(limit)
        .all()
    )
