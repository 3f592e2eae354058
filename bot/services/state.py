"""Wires the game services around one database and one writer lock."""
from __future__ import annotations

import asyncio
import random
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import config
from bot.services.config_store import ConfigStore
from bot.services.delivery import RoleDispatcher
from bot.services.game import GameSessionManager
from bot.services.messaging import MessageSink
from bot.services.players import PlayerStore
from bot.services.presets import PresetCatalog
from bot.services.queue import QueueManager
from bot.services.registration import RegistrationProcessor


class GameServices:
    """All core services for one stream. Every mutation of queue/game state goes through ``lock``."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        sink: Optional[MessageSink] = None,
        queue_capacity: Optional[int] = None,
        command: Optional[str] = None,
        send_timeout: Optional[float] = None,
        rng: Optional[random.Random] = None,
    ):
        if queue_capacity is None:
            queue_capacity = config.QUEUE_CAPACITY
        if send_timeout is None:
            send_timeout = config.ROLE_SEND_TIMEOUT
        self.session_factory = session_factory
        self.lock = asyncio.Lock()
        # Role delivery runs one at a time; separate from ``lock`` so end() can cut a run short.
        self.dispatch_lock = asyncio.Lock()
        self.players = PlayerStore(session_factory, self.lock)
        self.queue = QueueManager(session_factory, self.lock, capacity=queue_capacity)
        self.presets = PresetCatalog(session_factory)
        self.game = GameSessionManager(session_factory, self.lock, rng=rng)
        self.registration = RegistrationProcessor(
            session_factory,
            self.lock,
            self.queue,
            command=command or config.REGISTRATION_COMMAND,
            sink=sink,
            send_timeout=send_timeout,
        )
        self.settings = ConfigStore(session_factory)
        self._send_timeout = send_timeout
        self.sink = sink

    def dispatcher(self, sink: Optional[MessageSink] = None) -> RoleDispatcher:
        sink = sink or self.sink
        if sink is None:
            raise RuntimeError("No message sink configured for role delivery")
        return RoleDispatcher(self.game, sink, send_timeout=self._send_timeout, lock=self.dispatch_lock)
