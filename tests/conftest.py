import datetime as dt
import re

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from app.core.config import Settings
from app.core.db import build_engine, build_session_factory, init_models
from app.services.auth import AuthService
from app.services.otp_delivery import select_otp_delivery
from app.utils.time import utcnow


class RecordingNotifier:
    """Stands in for the SMTP notifier; keeps every message in memory."""

    def __init__(self):
        self.outbox: list[dict] = []
        self.fail = False

    async def send(self, to, subject: str, html: str) -> bool:
        if self.fail:
            return False
        recipients = [to] if isinstance(to, str) else list(to)
        self.outbox.append({"to": recipients, "subject": subject, "html": html})
        return True

    def last_code(self) -> str:
        match = re.search(r"<strong>(\d+)</strong>", self.outbox[-1]["html"])
        assert match, "no code in last message"
        return match.group(1)

    def last_reset_token(self) -> str:
        match = re.search(r"token=([0-9a-f]+)", self.outbox[-1]["html"])
        assert match, "no reset link in last message"
        return match.group(1)


class FakeClock:
    def __init__(self):
        self.now = utcnow()

    def __call__(self) -> dt.datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += dt.timedelta(**kwargs)


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'auth.db'}",
        jwt_access_secret="test-access-secret-0123456789abcdef",
        jwt_refresh_secret="test-refresh-secret-0123456789abcdef",
        mail_suppress_send=True,
        enforce_https=False,
    )


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def session_factory(settings):
    engine = build_engine(settings.database_url)
    await init_models(engine)
    yield build_session_factory(engine)
    await engine.dispose()


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_service(db, settings, notifier, clock):
    """Build an AuthService, optionally with overridden settings."""

    def _make(**overrides) -> AuthService:
        current = settings.model_copy(update=overrides) if overrides else settings
        return AuthService(db, current, notifier, select_otp_delivery(current), clock=clock)

    return _make


@pytest.fixture
def service(make_service) -> AuthService:
    return make_service()


@pytest_asyncio.fixture
async def verified_user(service, notifier):
    """Register and verify alice; returns (username, email, password)."""
    await service.register(username="alice", email="alice@x.com", password="pw123456")
    await service.verify_email("alice@x.com", notifier.last_code())
    return "alice", "alice@x.com", "pw123456"


@pytest_asyncio.fixture
async def client(settings, notifier, clock):
    from main import create_app

    app = create_app(settings, notifier=notifier)
    app.state.clock = clock
    await init_models(app.state.engine)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as async_client:
        yield async_client
    await app.state.engine.dispose()
