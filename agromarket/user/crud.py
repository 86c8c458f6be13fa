from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import Optional, Dict, Any
from fastapi import status
from .models import User
from .schemas import UPDATABLE_FIELDS
from ..core import config
from ..core.constants import Role, VerificationStatus
from ..core.errors import AppError
from ..core.security import hash_password, encrypt


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def get_user(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()


def get_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(User.email == normalize_email(email)).first()


def create_user(db: Session, data: Dict[str, Any]) -> User:
    """
    Create a user on signup.

    The password is hashed with bcrypt and the optional idNumber is
    encrypted; supplying an idNumber marks the account VERIFIED.

    Raises:
        AppError: 409 if the email is already registered
    """
    email = normalize_email(data["email"])
    if get_user_by_email(db, email):
        raise AppError("Email already exists", status.HTTP_409_CONFLICT)

    id_number = data.get("id_number")
    db_user = User(
        email=email,
        password=hash_password(data["password"]),
        first_name=data["first_name"],
        last_name=data["last_name"],
        phone_number=data.get("phone_number"),
        role=data.get("role") or Role.FARMER.value,
        country=data["country"],
        county=data.get("county"),
        sub_county=data.get("sub_county"),
        latitude=data.get("latitude"),
        longitude=data.get("longitude"),
        id_number=encrypt(id_number) if id_number else None,
        avatar_url=data.get("avatar_url"),
        verification_status=(
            VerificationStatus.VERIFIED.value if id_number else VerificationStatus.NOT_VERIFIED.value
        ),
    )
    db.add(db_user)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent signup for the same email
        db.rollback()
        raise AppError("Email already exists", status.HTTP_409_CONFLICT)
    db.refresh(db_user)
    return db_user


def update_user(db: Session, user_id: int, changes: Dict[str, Any]) -> User:
    """
    Apply a profile patch to the canonical user row.

    Only UPDATABLE_FIELDS are written. A new idNumber is stored encrypted;
    whether it also changes the verification status is governed by
    ID_NUMBER_UPDATE_VERIFIES.

    Raises:
        AppError: 404 if the user does not exist
    """
    db_user = get_user(db, user_id)
    if not db_user:
        raise AppError("User not found", status.HTTP_404_NOT_FOUND)

    for field, value in changes.items():
        if field not in UPDATABLE_FIELDS:
            continue
        if field == "id_number":
            value = encrypt(value)
            if config.ID_NUMBER_UPDATE_VERIFIES:
                db_user.verification_status = VerificationStatus.VERIFIED.value
        setattr(db_user, field, value)

    db.commit()
    db.refresh(db_user)
    return db_user


def set_password(db: Session, db_user: User, new_password: str) -> None:
    """Stage a new password hash; the caller owns the transaction."""
    db_user.password = hash_password(new_password)
