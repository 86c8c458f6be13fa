from pydantic import Field, AnyHttpUrl
from typing import Optional
from datetime import datetime
from ..core.constants import Country
from ..core.schemas import CamelModel

# Fields a user may change on their own profile
UPDATABLE_FIELDS = (
    "first_name", "last_name", "phone_number", "country", "county", "sub_county",
    "latitude", "longitude", "id_number", "avatar_url",
)


class UserProfile(CamelModel):
    id: int
    email: str
    first_name: str
    last_name: str
    phone_number: Optional[str] = None
    role: str
    country: str
    county: Optional[str] = None
    sub_county: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    verification_status: str
    avatar_url: Optional[str] = None
    average_rating: Optional[float] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class ProfileUpdate(CamelModel):
    first_name: Optional[str] = Field(None, min_length=1)
    last_name: Optional[str] = Field(None, min_length=1)
    phone_number: Optional[str] = None
    country: Optional[Country] = None
    county: Optional[str] = None
    sub_county: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    id_number: Optional[str] = None
    avatar_url: Optional[AnyHttpUrl] = None

    def changes(self) -> dict:
        """The supplied, non-null fields as plain Python values."""
        data = self.model_dump(exclude_unset=True, exclude_none=True)
        if "country" in data:
            data["country"] = Country(data["country"]).value
        if "avatar_url" in data:
            data["avatar_url"] = str(data["avatar_url"])
        return data


class FarmerSummary(CamelModel):
    first_name: str
    last_name: str
    average_rating: Optional[float] = None


class OwnerSummary(FarmerSummary):
    county: Optional[str] = None
