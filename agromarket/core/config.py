import os
from pathlib import Path
from dotenv import load_dotenv
import logging

logger = logging.getLogger(__name__)

# Look for a .env file at the project root
env_path = Path(__file__).parent.parent.parent / '.env'
if env_path.exists():
    logger.info(f"Loading environment variables from: {env_path}")
    load_dotenv(dotenv_path=env_path, override=False)


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


# Basic settings
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
PORT = os.getenv("PORT", "8000")

# Database
DB_HOST = os.getenv("DB_HOST", "localhost")
DB_PORT = os.getenv("DB_PORT", "3306")
DB_NAME = os.getenv("DB_NAME", "agromarket")
DB_USER = os.getenv("DB_USER", "agromarket")
DB_PASSWORD = os.getenv("DB_PASSWORD", "agromarket")
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"mysql+pymysql://{DB_USER}:{DB_PASSWORD}@{DB_HOST}:{DB_PORT}/{DB_NAME}"
)

# Redis
REDIS_HOST = os.getenv("REDIS_HOST", "localhost")
REDIS_PORT = os.getenv("REDIS_PORT", "6379")
REDIS_DB = os.getenv("REDIS_DB", "0")
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", "")
REDIS_URL = os.getenv("REDIS_URL", f"redis://:{REDIS_PASSWORD}@{REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}")
PROFILE_CACHE_TTL = int(os.getenv("PROFILE_CACHE_TTL", "3600"))

# JWT
JWT_SECRET = os.getenv("JWT_SECRET", "change-me")
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_DAYS = int(os.getenv("ACCESS_TOKEN_EXPIRE_DAYS", "1"))

# Password hashing and field encryption
BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", "10"))
# 32 bytes, hex encoded (64 characters)
ENCRYPTION_KEY = os.getenv("ENCRYPTION_KEY")

# Whether a profile update carrying an idNumber marks the user VERIFIED
ID_NUMBER_UPDATE_VERIFIES = _as_bool(os.getenv("ID_NUMBER_UPDATE_VERIFIES", "False"))

# Password reset
PASSWORD_RESET_TTL_MINUTES = int(os.getenv("PASSWORD_RESET_TTL_MINUTES", "60"))
FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:3000")

# Mail
SMTP_HOST = os.getenv("SMTP_HOST", "smtp.gmail.com")
SMTP_PORT = int(os.getenv("SMTP_PORT", "587"))
SMTP_USER = os.getenv("SMTP_USER", os.getenv("EMAIL_USER", ""))
SMTP_PASSWORD = os.getenv("SMTP_PASSWORD", os.getenv("EMAIL_PASS", ""))
SMTP_USE_TLS = _as_bool(os.getenv("SMTP_USE_TLS", "True"))
EMAIL_FROM = os.getenv("EMAIL_FROM", SMTP_USER)

# Cloudinary
CLOUDINARY_CLOUD_NAME = os.getenv("CLOUDINARY_CLOUD_NAME")
CLOUDINARY_API_KEY = os.getenv("CLOUDINARY_API_KEY")
CLOUDINARY_API_SECRET = os.getenv("CLOUDINARY_API_SECRET")
CLOUDINARY_AVATAR_FOLDER = os.getenv("CLOUDINARY_AVATAR_FOLDER", "avatars")

# Rate limiting ("<count> per <n> <unit>" strings)
# Plain limits URIs ("memory://", "redis://...") are served by the asyncio storages
RATE_LIMIT_STORAGE_URI = os.getenv("RATE_LIMIT_STORAGE_URI", "memory://")
AUTH_RATE_LIMIT = os.getenv("AUTH_RATE_LIMIT", "5 per 15 minutes")
FEEDBACK_RATE_LIMIT = os.getenv("FEEDBACK_RATE_LIMIT", "10 per hour")
GENERAL_RATE_LIMIT = os.getenv("GENERAL_RATE_LIMIT", "100 per hour")

# Audit log
AUDIT_QUEUE_SIZE = int(os.getenv("AUDIT_QUEUE_SIZE", "1000"))
