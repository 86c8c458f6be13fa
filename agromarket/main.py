from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm import sessionmaker
import logging

from .core import config
from .core.cache import make_redis_client, ping_cache
from .core.constants import EventAction
from .core.database import Base, make_engine, make_session_factory
from .core.errors import register_exception_handlers
from .core.mailer import SMTPMailer
from .core.rate_limit import RateLimiter
from .core.security import bearer_token, decode_access_token
from .audit.logger import AuditLog, request_details
from .auth.routes import router as auth_router
from .user.routes import router as user_router
from .feedback.routes import router as feedback_router
from .ratings.routes import router as ratings_router
from .products.routes import router as products_router

# Models must be imported so create_all sees every table
from .user import models as user_models  # noqa: F401
from .auth import models as auth_models  # noqa: F401
from .ratings import models as ratings_models  # noqa: F401
from .feedback import models as feedback_models  # noqa: F401
from .products import models as products_models  # noqa: F401
from .audit import models as audit_models  # noqa: F401

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Create tables when starting up
    try:
        Base.metadata.create_all(bind=app.state.session_factory.kw["bind"])
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Error creating database tables: {str(e)}")
        raise

    if not await ping_cache(app.state.cache):
        logger.warning("Cache unavailable, profiles will be served from the database")

    await app.state.audit_log.start()
    yield
    await app.state.audit_log.stop()
    if app.state.cache is not None:
        try:
            await app.state.cache.aclose()
        except Exception as e:
            logger.warning(f"Error closing cache client: {str(e)}")


def create_app(
    session_factory: Optional[sessionmaker] = None,
    cache_client=None,
    mailer=None,
    rate_limit_storage_uri: Optional[str] = None,
    use_cache: bool = True,
) -> FastAPI:
    """
    Build the application with explicitly constructed collaborators.

    Args:
        session_factory: SQLAlchemy sessionmaker; defaults to DATABASE_URL
        cache_client: async Redis-compatible client; defaults to REDIS_URL
        mailer: object with `async send(to, subject, text)`; defaults to SMTP
        rate_limit_storage_uri: `limits` storage; defaults to RATE_LIMIT_STORAGE_URI
        use_cache: False runs without any cache

    Returns:
        FastAPI: the configured application
    """
    logging.basicConfig(
        level=config.LOG_LEVEL,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    app = FastAPI(title="AgroMarket API", lifespan=lifespan)

    session_factory = session_factory or make_session_factory(make_engine())
    if cache_client is None and use_cache:
        cache_client = make_redis_client()

    app.state.session_factory = session_factory
    app.state.cache = cache_client
    app.state.mailer = mailer or SMTPMailer()
    app.state.rate_limiter = RateLimiter(rate_limit_storage_uri)
    app.state.audit_log = AuditLog(session_factory)

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def audit_requests(request: Request, call_next):
        response = await call_next(request)
        payload = None
        token = bearer_token(request.headers.get("Authorization"))
        if token:
            payload = decode_access_token(token)
        app.state.audit_log.record(
            payload["id"] if payload else None,
            EventAction.REQUEST,
            details=request_details(
                request,
                method=request.method,
                path=request.url.path,
                status=response.status_code,
            ),
        )
        return response

    register_exception_handlers(app)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "healthy"}

    # Include routers
    app.include_router(auth_router)
    app.include_router(user_router)
    app.include_router(feedback_router)
    app.include_router(ratings_router)
    app.include_router(products_router)

    return app


app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run("agromarket.main:app", host="0.0.0.0", port=int(config.PORT), log_level="info")
