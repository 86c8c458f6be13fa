from .database import get_db, Base, make_engine, make_session_factory
from .cache import get_cache, set_cache, make_redis_client
from .security import hash_password, verify_password
from .errors import AppError

__all__ = [
    'Base', 'get_db', 'make_engine', 'make_session_factory',
    'verify_password', 'hash_password',
    'set_cache', 'get_cache', 'make_redis_client',
    'AppError',
]
