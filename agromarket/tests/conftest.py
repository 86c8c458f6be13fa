import pytest
import pytest_asyncio
import fakeredis
from httpx import AsyncClient, ASGITransport

from ..core import config
from ..core.database import Base, make_engine, make_session_factory
from ..main import create_app
from .utils import RecordingMailer

TEST_ENCRYPTION_KEY = "8f" * 32


@pytest.fixture(autouse=True)
def test_settings(monkeypatch):
    monkeypatch.setattr(config, "ENCRYPTION_KEY", TEST_ENCRYPTION_KEY)
    monkeypatch.setattr(config, "JWT_SECRET", "test-secret")
    monkeypatch.setattr(config, "ID_NUMBER_UPDATE_VERIFIES", False)


@pytest.fixture
def session_factory(tmp_path):
    engine = make_engine(f"sqlite:///{tmp_path / 'test.db'}")
    Base.metadata.create_all(bind=engine)
    yield make_session_factory(engine)
    engine.dispose()


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def cache():
    return fakeredis.FakeAsyncRedis(decode_responses=True)


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest_asyncio.fixture
async def app(session_factory, cache, mailer):
    application = create_app(
        session_factory=session_factory,
        cache_client=cache,
        mailer=mailer,
        rate_limit_storage_uri="memory://",
    )
    await application.state.audit_log.start()
    yield application
    await application.state.audit_log.stop()


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
