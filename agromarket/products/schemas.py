from typing import Optional
from datetime import datetime
from ..core.schemas import CamelModel
from ..user.schemas import OwnerSummary


class ProductResponse(CamelModel):
    id: int
    name: str
    description: Optional[str] = None
    price: float
    unit: Optional[str] = None
    image_url: Optional[str] = None
    created_at: Optional[datetime] = None
    user: Optional[OwnerSummary] = None
