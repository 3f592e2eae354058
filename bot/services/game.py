"""Game session state machine: draft the head of the queue and deal roles from a preset.

States: no session -> active -> ended (and back to "no session" for the next start).
At most one session is active; the unique ``active_slot`` column enforces it in storage.
"""
from __future__ import annotations

import asyncio
import logging
import random
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from bot.models import Assignment, GameSession, QueueEntry, RolePreset
from bot.models.base import utcnow
from bot.models.game import STATUS_ACTIVE, STATUS_ENDED
from bot.services.errors import (
    InsufficientQueue,
    InvalidInput,
    NoActiveSession,
    NotFound,
    PresetNotFound,
    SessionAlreadyActive,
)
from bot.services.queue import clear_in, head_in

logger = logging.getLogger("mafia.game")

ACTIVE_SLOT = 1


@dataclass
class EndResult:
    session_id: int
    cleared: int


class GameSessionManager:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        lock: asyncio.Lock,
        rng: Optional[random.Random] = None,
    ):
        self._session_factory = session_factory
        self._lock = lock
        self._rng = rng or random.SystemRandom()

    async def start(self, preset_id: int, player_count: Optional[int] = None) -> GameSession:
        """Draft the first ``player_count`` queued players and bind them to shuffled roles.

        Nothing changes unless every check passes: the queue delete, session insert and
        assignment inserts commit together.
        """
        async with self._lock:
            async with self._session_factory() as session:
                if await active_in(session):
                    raise SessionAlreadyActive()
                preset = await session.get(RolePreset, preset_id)
                if not preset:
                    raise PresetNotFound()
                if player_count is None:
                    player_count = preset.player_count
                if player_count != preset.player_count or player_count != len(preset.roles):
                    raise InvalidInput(
                        f"Preset '{preset.name}' is for {preset.player_count} players, not {player_count}"
                    )

                drafted = await head_in(session, player_count)
                if len(drafted) < player_count:
                    raise InsufficientQueue(
                        f"Not enough players in the queue ({len(drafted)}/{player_count})"
                    )

                names = [e.player.nick for e in drafted]
                roles = list(preset.roles)
                self._rng.shuffle(roles)

                entry_ids = [e.id for e in drafted]
                removed = await session.execute(delete(QueueEntry).where(QueueEntry.id.in_(entry_ids)))
                if removed.rowcount != len(entry_ids):
                    await session.rollback()
                    raise InsufficientQueue("Queue changed while drafting, try again")

                game = GameSession(
                    status=STATUS_ACTIVE,
                    active_slot=ACTIVE_SLOT,
                    preset_id=preset.id,
                    preset_name=preset.name,
                    roles=list(preset.roles),
                )
                game.assignments = [
                    Assignment(player_id=entry.player_id, seat=seat, role=role)
                    for seat, (entry, role) in enumerate(zip(drafted, roles))
                ]
                session.add(game)
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    raise SessionAlreadyActive() from None
                game_id = game.id

        logger.info(
            "Game %s started with preset %s: %s",
            game_id,
            preset.name,
            ", ".join(names),
        )
        return await self.get(game_id)

    async def get(self, session_id: int) -> GameSession:
        async with self._session_factory() as session:
            game = await session.get(GameSession, session_id, options=[_with_players()])
            if not game:
                raise NotFound("Game not found")
            return game

    async def current(self) -> Optional[GameSession]:
        """The active session with its assignments, or None."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(GameSession).where(GameSession.status == STATUS_ACTIVE).options(_with_players())
            )
            return result.scalar_one_or_none()

    async def current_assignments(self) -> list[Assignment]:
        game = await self.current()
        return list(game.assignments) if game else []

    async def is_active(self, session_id: int) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                select(GameSession.status).where(GameSession.id == session_id)
            )
            return result.scalar_one_or_none() == STATUS_ACTIVE

    async def mark_delivered(self, assignment_id: int) -> bool:
        """Flag an assignment as delivered. Returns False if it already was (no change)."""
        async with self._session_factory() as session:
            result = await session.execute(
                update(Assignment)
                .where(Assignment.id == assignment_id, Assignment.delivered == False)  # noqa: E712
                .values(delivered=True, delivered_at=utcnow())
            )
            await session.commit()
            if result.rowcount:
                return True
            if not await session.get(Assignment, assignment_id):
                raise NotFound("Assignment not found")
            return False

    async def end(self) -> EndResult:
        """End the active game and empty the whole queue (undrafted players included)."""
        async with self._lock:
            async with self._session_factory() as session:
                game = await active_in(session)
                if not game:
                    raise NoActiveSession()
                game.status = STATUS_ENDED
                game.active_slot = None
                game.ended_at = utcnow()
                cleared = await clear_in(session)
                await session.commit()
                game_id = game.id
        logger.info("Game %s ended, %d queued players cleared", game_id, cleared)
        return EndResult(session_id=game_id, cleared=cleared)

    async def history(self, limit: int = 20) -> list[GameSession]:
        """Most recent ended games, newest first."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(GameSession)
                .where(GameSession.status == STATUS_ENDED)
                .order_by(GameSession.id.desc())
                .limit(limit)
                .options(_with_players())
            )
            return list(result.scalars().all())


async def active_in(session: AsyncSession) -> Optional[GameSession]:
    result = await session.execute(select(GameSession).where(GameSession.status == STATUS_ACTIVE))
    return result.scalar_one_or_none()


def _with_players():
    return selectinload(GameSession.assignments).selectinload(Assignment.player)
