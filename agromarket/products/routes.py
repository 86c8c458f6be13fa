from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import List

from ..core.database import get_db
from .crud import get_featured_products
from .schemas import ProductResponse

router = APIRouter(prefix="/api/products", tags=["Products"])


@router.get("/featured", response_model=List[ProductResponse])
async def featured_products(db: Session = Depends(get_db)):
    return get_featured_products(db)
