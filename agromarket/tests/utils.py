from typing import Optional

from ..core.constants import Role, Country
from ..core.errors import AppError
from ..core.security import create_access_token
from ..user.crud import create_user
from ..user.models import User

DEFAULT_PASSWORD = "secret123"


class RecordingMailer:
    """Mailer double that keeps sent messages in memory."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent = []

    async def send(self, to: str, subject: str, text: str) -> None:
        if self.fail:
            raise AppError("Email sending failed", 500)
        self.sent.append({"to": to, "subject": subject, "text": text})


class BrokenCache:
    """Cache client whose every call fails as if Redis were down."""

    async def get(self, key):
        raise ConnectionError("Redis is down")

    async def setex(self, key, expire, value):
        raise ConnectionError("Redis is down")

    async def ping(self):
        raise ConnectionError("Redis is down")

    async def aclose(self):
        return None


def make_user(db, email: str, role: Role = Role.FARMER, password: str = DEFAULT_PASSWORD,
              id_number: Optional[str] = None, **extra) -> User:
    data = {
        "email": email,
        "password": password,
        "first_name": extra.pop("first_name", "Wanjiru"),
        "last_name": extra.pop("last_name", "Kamau"),
        "role": role.value,
        "country": extra.pop("country", Country.KENYA.value),
        "id_number": id_number,
    }
    data.update(extra)
    return create_user(db, data)


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id, user.role)}"}


def signup_payload(email: str, **overrides) -> dict:
    payload = {
        "email": email,
        "password": DEFAULT_PASSWORD,
        "firstName": "Achieng",
        "lastName": "Otieno",
        "role": "BUYER",
        "country": "KENYA",
        "county": "Kisumu",
    }
    payload.update(overrides)
    return payload
