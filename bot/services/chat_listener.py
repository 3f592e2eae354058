"""Live chat connection owner: one client at a time, explicit states, bounded reconnects.

The listener does not know which platform it talks to. A ``client_factory`` builds a
client for a channel; the client calls ``on_message(chat_id, text)`` for each chat
message and ``on_connected()`` once it is receiving. ``client.run()`` blocks until the
connection ends (returning or raising), after which the listener waits
``retry_delay`` and tries again. ``max_attempts`` bounds the consecutive failed tries,
the first one included.
"""
from __future__ import annotations

import asyncio
import enum
import logging
from typing import Awaitable, Callable, Optional, Protocol

logger = logging.getLogger("mafia.chat")

MessageHandler = Callable[[str, str], Awaitable[object]]


class ConnectionState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


class ChatClient(Protocol):
    async def run(self) -> None:
        ...

    async def close(self) -> None:
        ...


ClientFactory = Callable[[str, MessageHandler, Callable[[], None]], ChatClient]


class ChatListener:
    def __init__(
        self,
        client_factory: ClientFactory,
        on_message: MessageHandler,
        *,
        on_state_change: Optional[Callable[[ConnectionState], None]] = None,
        retry_delay: float = 5.0,
        max_attempts: int = 10,
    ):
        self._client_factory = client_factory
        self._on_message = on_message
        self._on_state_change = on_state_change
        self.retry_delay = retry_delay
        self.max_attempts = max_attempts

        self.state = ConnectionState.DISCONNECTED
        self.channel: str = ""
        self.failures = 0
        self.gave_up = False
        self._client: Optional[ChatClient] = None
        self._task: Optional[asyncio.Task] = None

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def status(self) -> dict:
        return {
            "state": self.state.value,
            "connected": self.connected,
            "channel": self.channel,
            "failures": self.failures,
            "gave_up": self.gave_up,
        }

    def _set_state(self, state: ConnectionState) -> None:
        if state is self.state:
            return
        self.state = state
        logger.info("Chat %s: %s", self.channel or "-", state.value)
        if self._on_state_change:
            try:
                self._on_state_change(state)
            except Exception:
                logger.exception("Chat state callback failed")

    def _mark_connected(self) -> None:
        self.failures = 0
        self._set_state(ConnectionState.CONNECTED)

    async def start(self, channel: str) -> None:
        """Connect to ``channel`` (no-op if already running on it)."""
        channel = (channel or "").strip().lstrip("@").lower()
        if self.running and channel == self.channel:
            return
        await self.restart(channel)

    async def restart(self, channel: Optional[str] = None) -> None:
        """Drop the current connection and reconnect, resetting the retry budget."""
        await self.stop()
        if channel is not None:
            self.channel = channel.strip().lstrip("@").lower()
        self.failures = 0
        self.gave_up = False
        if not self.channel:
            logger.warning("No chat channel configured; chat listener not started")
            return
        self._task = asyncio.create_task(self._run_loop(), name=f"chat:{self.channel}")

    async def stop(self) -> None:
        task, self._task = self._task, None
        client = self._client
        if task and not task.done():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass
        if client:
            try:
                await client.close()
            except Exception:
                logger.exception("Error closing chat client")
        self._client = None
        self._set_state(ConnectionState.DISCONNECTED)

    async def _run_loop(self) -> None:
        while True:
            self._set_state(ConnectionState.CONNECTING)
            self._client = self._client_factory(self.channel, self._on_message, self._mark_connected)
            try:
                await self._client.run()
                logger.warning("Chat connection to %s closed", self.channel)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Chat connection to %s failed: %s: %s", self.channel, type(e).__name__, e)
            finally:
                self._client = None
            self._set_state(ConnectionState.DISCONNECTED)

            self.failures += 1
            if self.failures >= self.max_attempts:
                self.gave_up = True
                logger.error(
                    "Could not connect to %s chat after %d attempts; waiting for a manual reconnect",
                    self.channel,
                    self.max_attempts,
                )
                return
            logger.info("Reconnecting to %s in %gs (%d/%d)", self.channel, self.retry_delay, self.failures, self.max_attempts)
            await asyncio.sleep(self.retry_delay)
