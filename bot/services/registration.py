"""Registration event processor: turns a chat `!reg` into a queue slot, exactly once per player."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bot.models import RegistrationLog
from bot.models.registration_log import LOG_ALREADY_QUEUED, LOG_FAILED, LOG_SUCCESS
from bot.services.errors import AlreadyQueued, CapacityExceeded, TransportFailure
from bot.services.messaging import MessageSink, send_with_timeout
from bot.services.players import find_by_chat_id
from bot.services.queue import QueueManager

logger = logging.getLogger("mafia.registration")

NOT_REGISTERED = "Not registered on the platform"
ALREADY_QUEUED = "Already in the queue"


@dataclass
class Outcome:
    status: str  # success, failed, already_queued
    message: str
    position: Optional[int] = None
    player_id: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.status == LOG_SUCCESS


class RegistrationProcessor:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        lock: asyncio.Lock,
        queue: QueueManager,
        *,
        command: str = "!reg",
        sink: Optional[MessageSink] = None,
        send_timeout: float = 10.0,
    ):
        self._session_factory = session_factory
        self._lock = lock
        self._queue = queue
        self.command = command.strip().lower()
        self.sink = sink
        self._send_timeout = send_timeout

    def is_registration_command(self, text: str) -> bool:
        return (text or "").strip().lower() == self.command

    async def on_chat_message(self, chat_id: str, text: str) -> Optional[Outcome]:
        """Chat event entry point. Anything other than the registration command is ignored."""
        if not self.is_registration_command(text):
            return None
        return await self.handle(chat_id)

    async def handle(self, chat_id: str) -> Outcome:
        """Process one registration attempt. Always writes exactly one audit log row."""
        raw = (chat_id or "").strip()
        contact_id = None
        async with self._lock:
            async with self._session_factory() as session:
                player = await find_by_chat_id(session, raw)
                if not player:
                    outcome = Outcome(LOG_FAILED, NOT_REGISTERED)
                    nick = raw
                else:
                    player_id, nick, contact_id = player.id, player.nick, player.contact_id
                    try:
                        position = await self._queue.enqueue_in(session, player)
                        outcome = Outcome(
                            LOG_SUCCESS,
                            f"Added to the queue. Position: {position}",
                            position=position,
                            player_id=player_id,
                        )
                    except AlreadyQueued:
                        outcome = Outcome(LOG_ALREADY_QUEUED, ALREADY_QUEUED, player_id=player_id)
                    except CapacityExceeded as e:
                        outcome = Outcome(LOG_FAILED, e.message, player_id=player_id)
                session.add(
                    RegistrationLog(
                        player_id=outcome.player_id,
                        chat_id=raw,
                        nick=nick or raw,
                        status=outcome.status,
                        message=outcome.message,
                    )
                )
                await session.commit()

        logger.info("!reg from %s: %s (%s)", raw, outcome.status, outcome.message)
        if outcome.ok and contact_id:
            await self._confirm(contact_id, outcome.position)
        return outcome

    async def _confirm(self, contact_id: str, position: int) -> None:
        """Best-effort queue confirmation DM."""
        if not self.sink:
            return
        capacity = self._queue.capacity
        where = f"{position}/{capacity}" if capacity else str(position)
        try:
            await send_with_timeout(
                self.sink, contact_id, f"✅ You're in the queue!\n\n📍 Position: {where}", self._send_timeout
            )
        except TransportFailure as e:
            logger.warning("Queue confirmation to %s failed: %s", contact_id, e.message)

    async def recent_logs(self, limit: int = 50) -> list[RegistrationLog]:
        """Most recent attempts, newest first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(RegistrationLog)
                .order_by(RegistrationLog.created_at.desc(), RegistrationLog.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    async def log_counts(self) -> dict[str, int]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(RegistrationLog.status, func.count(RegistrationLog.id)).group_by(RegistrationLog.status)
            )
            counts = dict(result.all())
        return {
            "successful": counts.get(LOG_SUCCESS, 0),
            "failed": counts.get(LOG_FAILED, 0),
            "already_queued": counts.get(LOG_ALREADY_QUEUED, 0),
        }
