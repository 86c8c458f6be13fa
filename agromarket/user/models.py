from sqlalchemy import Column, Integer, String, DateTime, Float, Numeric, func
from ..core.database import Base
from ..core.constants import Role, VerificationStatus


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    password = Column(String(255), nullable=False)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone_number = Column(String(30))
    role = Column(String(20), nullable=False, default=Role.FARMER.value)
    country = Column(String(20), nullable=False)
    county = Column(String(100))
    sub_county = Column(String(100))
    latitude = Column(Float)
    longitude = Column(Float)
    # iv:ciphertext hex pair, see core.security.encrypt
    id_number = Column(String(255))
    verification_status = Column(String(20), nullable=False, default=VerificationStatus.NOT_VERIFIED.value)
    average_rating = Column(Numeric(3, 2), nullable=True)
    avatar_url = Column(String(500))
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())
