"""Tests for the chat connection owner (states, reconnect budget, restart)."""
import asyncio

import pytest

from bot.services.chat_listener import ChatListener, ConnectionState


class FakeChatClient:
    """Either fails immediately or connects and stays up until closed."""

    def __init__(self, channel, on_message, on_connected, fail: bool):
        self.channel = channel
        self.on_message = on_message
        self.on_connected = on_connected
        self.fail = fail
        self.closed = asyncio.Event()

    async def run(self):
        if self.fail:
            raise ConnectionError("chat unavailable")
        self.on_connected()
        await self.closed.wait()

    async def close(self):
        self.closed.set()


class FakeFactory:
    def __init__(self, outcomes=None, default_fail: bool = False):
        self.outcomes = list(outcomes or [])
        self.default_fail = default_fail
        self.clients: list[FakeChatClient] = []

    def __call__(self, channel, on_message, on_connected):
        fail = self.outcomes.pop(0) if self.outcomes else self.default_fail
        client = FakeChatClient(channel, on_message, on_connected, fail)
        self.clients.append(client)
        return client


async def wait_until(predicate, timeout: float = 1.0):
    async def _poll():
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_poll(), timeout)


async def _noop(chat_id, text):
    return None


@pytest.mark.asyncio
async def test_connects_and_reports_states():
    states = []
    factory = FakeFactory()
    listener = ChatListener(factory, _noop, on_state_change=states.append, retry_delay=0)

    await listener.start("@StreamerName")
    await wait_until(lambda: listener.connected)

    assert listener.channel == "streamername"
    assert factory.clients[0].channel == "streamername"
    assert states == [ConnectionState.CONNECTING, ConnectionState.CONNECTED]
    assert listener.status()["state"] == "connected"

    await listener.stop()
    assert factory.clients[0].closed.is_set()
    assert listener.state is ConnectionState.DISCONNECTED
    assert states[-1] is ConnectionState.DISCONNECTED


@pytest.mark.asyncio
async def test_messages_reach_the_handler():
    received = []

    async def handler(chat_id, text):
        received.append((chat_id, text))

    factory = FakeFactory()
    listener = ChatListener(factory, handler, retry_delay=0)
    await listener.start("stream")
    await wait_until(lambda: listener.connected)

    await factory.clients[0].on_message("alice", "!reg")
    assert received == [("alice", "!reg")]
    await listener.stop()


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts():
    factory = FakeFactory(default_fail=True)
    listener = ChatListener(factory, _noop, retry_delay=0, max_attempts=3)

    await listener.start("stream")
    await wait_until(lambda: not listener.running)

    assert len(factory.clients) == 3  # first try + 2 retries
    assert listener.gave_up is True
    assert listener.state is ConnectionState.DISCONNECTED
    assert listener.status()["gave_up"] is True


@pytest.mark.asyncio
async def test_single_attempt_budget_means_no_retry():
    factory = FakeFactory(default_fail=True)
    listener = ChatListener(factory, _noop, retry_delay=0, max_attempts=1)

    await listener.start("stream")
    await wait_until(lambda: listener.gave_up)

    assert len(factory.clients) == 1


@pytest.mark.asyncio
async def test_successful_connection_resets_failures():
    factory = FakeFactory(outcomes=[True, True, False])
    listener = ChatListener(factory, _noop, retry_delay=0, max_attempts=3)

    await listener.start("stream")
    await wait_until(lambda: listener.connected)

    assert len(factory.clients) == 3
    assert listener.failures == 0
    assert listener.gave_up is False
    await listener.stop()


@pytest.mark.asyncio
async def test_dropped_connection_reconnects():
    factory = FakeFactory()
    listener = ChatListener(factory, _noop, retry_delay=0)
    await listener.start("stream")
    await wait_until(lambda: listener.connected)

    await factory.clients[0].close()  # server side drop
    await wait_until(lambda: len(factory.clients) == 2 and listener.connected)
    await listener.stop()


@pytest.mark.asyncio
async def test_restart_after_giving_up():
    factory = FakeFactory(outcomes=[True], default_fail=False)
    listener = ChatListener(factory, _noop, retry_delay=0, max_attempts=1)

    await listener.start("stream")
    await wait_until(lambda: listener.gave_up)

    await listener.restart()
    await wait_until(lambda: listener.connected)
    assert listener.gave_up is False
    assert listener.channel == "stream"
    await listener.stop()


@pytest.mark.asyncio
async def test_start_same_channel_is_noop_and_new_channel_switches():
    factory = FakeFactory()
    listener = ChatListener(factory, _noop, retry_delay=0)
    await listener.start("stream")
    await wait_until(lambda: listener.connected)

    await listener.start("STREAM")
    assert len(factory.clients) == 1

    await listener.start("other")
    await wait_until(lambda: listener.connected)
    assert [c.channel for c in factory.clients] == ["stream", "other"]
    assert factory.clients[0].closed.is_set()
    await listener.stop()


@pytest.mark.asyncio
async def test_no_channel_does_not_connect():
    factory = FakeFactory()
    listener = ChatListener(factory, _noop, retry_delay=0)
    await listener.start("")
    assert listener.running is False
    assert factory.clients == []
