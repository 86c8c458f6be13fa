from pydantic import EmailStr, Field, AnyHttpUrl, field_validator
from typing import Optional
from ..core.constants import Role, Country
from ..core.schemas import CamelModel
from ..user.schemas import UserProfile


class Login(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=6)

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class Signup(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    phone_number: Optional[str] = None
    role: Role = Role.FARMER
    country: Country
    county: Optional[str] = None
    sub_county: Optional[str] = None
    latitude: Optional[float] = Field(None, ge=-90, le=90)
    longitude: Optional[float] = Field(None, ge=-180, le=180)
    id_number: Optional[str] = None
    avatar_url: Optional[AnyHttpUrl] = None

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    def to_user_data(self) -> dict:
        data = self.model_dump()
        data["role"] = self.role.value
        data["country"] = self.country.value
        data["avatar_url"] = str(self.avatar_url) if self.avatar_url else None
        return data


class ForgotPassword(CamelModel):
    email: EmailStr

    @field_validator("email")
    @classmethod
    def normalize_email(cls, value: str) -> str:
        return value.strip().lower()


class ResetPassword(CamelModel):
    token: str = Field(..., min_length=1)
    new_password: str = Field(..., min_length=6)


class AuthResponse(CamelModel):
    user: UserProfile
    token: str


class MessageResponse(CamelModel):
    message: str
