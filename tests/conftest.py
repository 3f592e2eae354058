"""Pytest configuration and fixtures: in-memory database, services, fake Discord/bot clients."""
import os

# Set test env BEFORE any imports that use config
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["INTERNAL_API_SECRET"] = "test-secret"
os.environ["QUEUE_CAPACITY"] = "0"
os.environ["CHAT_CHANNEL"] = "teststream"

import asyncio
import random

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.pool import StaticPool

from bot.models.base import create_engine, init_db, make_session_factory
from bot.services.errors import TransportFailure
from bot.services.state import GameServices
from web.api.main import app
from web.api.utils import get_bot_client, get_services


class FakeSink:
    """Records private messages. Contacts in ``fail_for`` raise, contacts in ``slow_for`` hang."""

    def __init__(self):
        self.sent: list[tuple[str, str]] = []
        self.fail_for: set[str] = set()
        self.slow_for: set[str] = set()
        self.before_send = None  # optional async hook(contact_id)

    async def send_private_message(self, contact_id: str, text: str) -> None:
        if self.before_send:
            await self.before_send(contact_id)
        if contact_id in self.fail_for:
            raise TransportFailure(f"cannot DM {contact_id}")
        if contact_id in self.slow_for:
            await asyncio.sleep(10)
        self.sent.append((contact_id, text))

    def sent_to(self, contact_id: str) -> list[str]:
        return [text for cid, text in self.sent if cid == contact_id]


class FakeBotClient(FakeSink):
    """Stands in for web.bot_client.BotClient (no bot process in tests)."""

    def __init__(self):
        super().__init__()
        self.reachable = True
        self.chat = {"state": "connected", "connected": True, "channel": "teststream", "failures": 0, "gave_up": False}
        self.reconnects: list = []
        self.disconnects = 0

    async def get_status(self):
        if not self.reachable:
            return None
        return {"discord": {"ready": True, "user": "MafiaBot#0001"}, "chat": self.chat}

    async def reconnect_chat(self, channel=None):
        self.reconnects.append(channel)
        if not self.reachable:
            return None
        if channel is not None:
            self.chat = {**self.chat, "channel": channel}
        return self.chat

    async def disconnect_chat(self):
        self.disconnects += 1
        if not self.reachable:
            return None
        self.chat = {**self.chat, "state": "disconnected", "connected": False}
        return self.chat


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
async def engine():
    """Fresh in-memory database per test."""
    eng = create_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    await init_db(eng)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return make_session_factory(engine)


@pytest.fixture
def sink():
    return FakeSink()


@pytest.fixture
def services(session_factory, sink):
    return GameServices(
        session_factory,
        sink=sink,
        queue_capacity=0,
        send_timeout=0.2,
        rng=random.Random(1234),
    )


@pytest.fixture
def make_player(services):
    """Create a player: await make_player("alice", contact="111")."""

    async def _make(chat_id: str, nick: str | None = None, contact: str | None = None):
        return await services.players.create(chat_id, nick or chat_id.capitalize(), contact_id=contact)

    return _make


@pytest.fixture
def bot_client():
    return FakeBotClient()


@pytest.fixture
async def client(services, bot_client):
    """Async HTTP client for testing the API, wired to the per-test services."""
    app.dependency_overrides[get_services] = lambda: services
    app.dependency_overrides[get_bot_client] = lambda: bot_client
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
    app.dependency_overrides.clear()
