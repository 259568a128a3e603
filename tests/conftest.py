"""
Pytest configuration and fixtures.
"""

import os

os.environ.setdefault("SECRET_KEY", "test-secret-key-for-flowless")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from typing import Any, AsyncGenerator, Dict, List, Tuple

import httpx
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from backend.app.main import app
from backend.app.core.database import Base, get_db
from backend.app.core.resilience import reset_circuit_breakers
from backend.app.core.security import CurrentUser, get_current_user
from backend.app.events.bus import initialize_event_bus
from backend.app.services.provider_adapters import get_provider_transport
from backend.app.services.push_service import PushSender, get_push_sender

# Import all models to register them with Base.metadata
import backend.app.models  # noqa: F401

# Use in-memory SQLite for testing
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

TEST_USER = CurrentUser(id="test-user-id", organization_id="test-org", role="admin")


class RecordingPushSender(PushSender):
    """Collects pushes instead of sending them. Endpoints in ``fail_endpoints`` raise."""

    def __init__(self):
        self.sent: List[Tuple[str, Dict[str, Any]]] = []
        self.fail_endpoints = set()

    async def send(self, subscription, payload):
        if subscription.endpoint in self.fail_endpoints:
            raise RuntimeError("push endpoint gone")
        self.sent.append((subscription.user_id, payload))


def _default_response(request: httpx.Request) -> httpx.Response:
    url = str(request.url)
    if "slack.com/api/auth.test" in url:
        return httpx.Response(200, json={"ok": True, "team": "Acme", "user": "flowless-bot", "team_id": "T1"})
    if "slack.com/api/chat.postMessage" in url:
        return httpx.Response(200, json={"ok": True, "ts": "1700000000.000100", "channel": "C1"})
    if "slack.com/api/conversations.list" in url:
        return httpx.Response(200, json={
            "ok": True,
            "channels": [
                {"id": "C1", "name": "general", "is_private": False},
                {"id": "C2", "name": "growth", "is_private": True},
            ],
        })
    if "api.twilio.com" in url and url.endswith("/Messages.json"):
        return httpx.Response(201, json={"sid": "SM123", "status": "queued"})
    if "api.twilio.com" in url:
        return httpx.Response(200, json={"friendly_name": "Test Account", "status": "active"})
    if "unifonic.com" in url and "getBalance" in url:
        return httpx.Response(200, json={"success": "true", "data": {"Balance": "42.5"}})
    if "unifonic.com" in url:
        return httpx.Response(200, json={"success": "true", "data": {"MessageID": 9001, "Status": "Sent"}})
    if "outbound-messages/whatsapp" in url:
        return httpx.Response(202, json={"request_id": "req-1", "request_process_status": "accepted"})
    if "whatsapp/templates" in url:
        return httpx.Response(200, json={"templates": [
            {"name": "welcome_offer", "language": {"code": "ar"}, "status": "APPROVED"},
        ]})
    if "accounts/configuration" in url:
        return httpx.Response(200, json={"account": "acme"})
    return httpx.Response(200, json={"received": True})


class ProviderStub:
    """
    httpx.MockTransport handler standing in for every outbound HTTP call.

    ``overrides`` maps a URL fragment to ``(status_code, json_body)``.
    """

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.overrides: Dict[str, Tuple[int, Any]] = {}

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        for fragment, (status_code, body) in self.overrides.items():
            if fragment in url:
                return httpx.Response(status_code, json=body)
        return _default_response(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)

    def requests_to(self, fragment: str) -> List[httpx.Request]:
        return [r for r in self.requests if fragment in str(r.url)]


@pytest.fixture(autouse=True)
def _reset_shared_state():
    reset_circuit_breakers()
    app.state.request_capture.clear()
    yield
    app.dependency_overrides.clear()


@pytest.fixture
def test_user() -> CurrentUser:
    return TEST_USER


@pytest.fixture
def provider_stub() -> ProviderStub:
    return ProviderStub()


@pytest.fixture
def push_sender() -> RecordingPushSender:
    return RecordingPushSender()


@pytest.fixture(scope="function")
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Creates a fresh database for a test.
    Tables are created before and dropped after each test.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(scope="function")
async def client(
    db_session: AsyncSession,
    provider_stub: ProviderStub,
    push_sender: RecordingPushSender,
) -> AsyncGenerator[AsyncClient, None]:
    """
    Test client with database, auth, outbound HTTP and push overridden.
    """
    initialize_event_bus(maxsize=100)

    async def override_get_db():
        yield db_session

    async def override_get_current_user():
        return TEST_USER

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_current_user] = override_get_current_user
    app.dependency_overrides[get_provider_transport] = lambda: provider_stub.transport
    app.dependency_overrides[get_push_sender] = lambda: push_sender

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture
async def anon_client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Client with only the database overridden; real bearer auth applies."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()
