"""Queue manager: FIFO waiting list of players for the next game.

Ordering is by ``QueueEntry.id`` (a strictly increasing sequence), so the
"first N" of the queue is always unambiguous. All mutations run under the
shared writer lock; the unique constraint on ``queue_entries.player_id`` is the
final guard against double-queuing.

The ``*_in`` helpers take an open session so other services (registration,
game start) can compose them into a single transaction while they already
hold the lock.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from bot.models import Player, QueueEntry
from bot.services.errors import AlreadyQueued, CapacityExceeded, NotFound

logger = logging.getLogger("mafia.queue")


@dataclass
class QueuedPlayer:
    """A queue entry with its 1-based position."""

    position: int
    entry_id: int
    player: Player
    added_at: datetime


class QueueManager:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        lock: asyncio.Lock,
        capacity: Optional[int] = None,
    ):
        self._session_factory = session_factory
        self._lock = lock
        self.capacity = capacity or None  # None / 0 = uncapped

    # --- reads (unlocked) ---

    async def count(self) -> int:
        async with self._session_factory() as session:
            return await count_in(session)

    async def contains(self, player_id: int) -> bool:
        async with self._session_factory() as session:
            return await contains_in(session, player_id)

    async def position_of(self, player_id: int) -> Optional[int]:
        async with self._session_factory() as session:
            entry = await _entry_for(session, player_id)
            if not entry:
                return None
            return await position_in(session, entry)

    async def list(self) -> list[QueuedPlayer]:
        """Whole queue in FIFO order."""
        async with self._session_factory() as session:
            entries = await head_in(session, None)
            return [
                QueuedPlayer(position=i + 1, entry_id=e.id, player=e.player, added_at=e.added_at)
                for i, e in enumerate(entries)
            ]

    async def dequeue_head(self, n: int) -> list[QueueEntry]:
        """First n entries (peek, nothing is removed)."""
        async with self._session_factory() as session:
            return await head_in(session, n)

    # --- writes (locked) ---

    async def enqueue(self, player_id: int) -> int:
        """Append a player to the queue. Returns the 1-based position."""
        async with self._lock:
            async with self._session_factory() as session:
                player = await session.get(Player, player_id)
                if not player:
                    raise NotFound("Player not found")
                position = await self.enqueue_in(session, player)
                await session.commit()
                return position

    async def remove(self, player_id: int) -> bool:
        """Remove a player's entry. No-op if absent; returns whether something was removed."""
        async with self._lock:
            async with self._session_factory() as session:
                result = await session.execute(delete(QueueEntry).where(QueueEntry.player_id == player_id))
                await session.commit()
                removed = (result.rowcount or 0) > 0
        if removed:
            logger.info("Player %s removed from queue", player_id)
        return removed

    async def clear(self) -> int:
        """Empty the queue. Returns how many entries were removed."""
        async with self._lock:
            async with self._session_factory() as session:
                cleared = await clear_in(session)
                await session.commit()
        logger.info("Queue cleared (%d entries)", cleared)
        return cleared

    async def enqueue_in(self, session: AsyncSession, player: Player) -> int:
        """Insert at the tail within an open transaction. Caller holds the lock and commits.

        On a unique-constraint race the session is rolled back before AlreadyQueued is raised.
        """
        nick, chat_id = player.nick, player.chat_id
        if await contains_in(session, player.id):
            raise AlreadyQueued(f"{nick} is already in the queue")
        if self.capacity:
            size = await count_in(session)
            if size >= self.capacity:
                raise CapacityExceeded(f"The queue is full ({size}/{self.capacity})")
        entry = QueueEntry(player_id=player.id)
        session.add(entry)
        try:
            await session.flush()
        except IntegrityError:
            # Lost a race with another writer (e.g. the other process); the transaction is unusable
            await session.rollback()
            raise AlreadyQueued(f"{nick} is already in the queue") from None
        position = await position_in(session, entry)
        logger.info("%s (%s) queued at position %d", nick, chat_id, position)
        return position


async def count_in(session: AsyncSession) -> int:
    result = await session.execute(select(func.count(QueueEntry.id)))
    return int(result.scalar_one())


async def contains_in(session: AsyncSession, player_id: int) -> bool:
    return await _entry_for(session, player_id) is not None


async def position_in(session: AsyncSession, entry: QueueEntry) -> int:
    result = await session.execute(select(func.count(QueueEntry.id)).where(QueueEntry.id <= entry.id))
    return int(result.scalar_one())


async def head_in(session: AsyncSession, n: Optional[int]) -> list[QueueEntry]:
    query = select(QueueEntry).options(selectinload(QueueEntry.player)).order_by(QueueEntry.id)
    if n is not None:
        query = query.limit(n)
    result = await session.execute(query)
    return list(result.scalars().all())


async def clear_in(session: AsyncSession) -> int:
    result = await session.execute(delete(QueueEntry))
    return result.rowcount or 0


async def _entry_for(session: AsyncSession, player_id: int) -> Optional[QueueEntry]:
    result = await session.execute(select(QueueEntry).where(QueueEntry.player_id == player_id))
    return result.scalar_one_or_none()
