"""Identity store: players keyed by their chat login, optionally linked to a Discord account."""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from bot.models import Assignment, GameSession, Player
from bot.models.game import STATUS_ACTIVE
from bot.models.player import normalize_chat_id
from bot.services.errors import Conflict, InvalidInput, NotFound

logger = logging.getLogger("mafia.players")


def _clean(value: str | None) -> Optional[str]:
    value = (value or "").strip()
    return value or None


class PlayerStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession], lock: asyncio.Lock):
        self._session_factory = session_factory
        self._lock = lock

    async def list(self) -> list[Player]:
        """All players, newest first."""
        async with self._session_factory() as session:
            result = await session.execute(select(Player).order_by(Player.created_at.desc(), Player.id.desc()))
            return list(result.scalars().all())

    async def get(self, player_id: int) -> Player:
        async with self._session_factory() as session:
            player = await session.get(Player, player_id)
            if not player:
                raise NotFound("Player not found")
            return player

    async def get_by_chat_id(self, chat_id: str) -> Optional[Player]:
        async with self._session_factory() as session:
            return await find_by_chat_id(session, chat_id)

    async def get_by_contact(self, contact_id: str) -> Optional[Player]:
        async with self._session_factory() as session:
            result = await session.execute(select(Player).where(Player.contact_id == str(contact_id)))
            return result.scalar_one_or_none()

    async def create(
        self,
        chat_id: str,
        nick: str,
        contact_id: str | None = None,
        phone: str | None = None,
    ) -> Player:
        """Add a player (admin). Chat login must be unique."""
        chat_id = normalize_chat_id(chat_id)
        nick = (nick or "").strip()
        if not chat_id or not nick:
            raise InvalidInput("Chat username and nick are required")
        async with self._lock:
            async with self._session_factory() as session:
                player = Player(chat_id=chat_id, nick=nick, contact_id=_clean(contact_id), phone=_clean(phone))
                session.add(player)
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    raise Conflict(f"Chat username '{chat_id}' or contact is already registered") from None
                await session.refresh(player)
        logger.info("Player %s (%s) created", player.nick, player.chat_id)
        return player

    async def update(
        self,
        player_id: int,
        nick: str,
        contact_id: str | None = None,
        phone: str | None = None,
        chat_id: str | None = None,
    ) -> Player:
        """Admin edit. Replaces nick, contact and phone.

        The chat username is fixed once set; passing it is allowed only if it matches.
        """
        nick = (nick or "").strip()
        if not nick:
            raise InvalidInput("Nick is required")
        async with self._lock:
            async with self._session_factory() as session:
                player = await session.get(Player, player_id)
                if not player:
                    raise NotFound("Player not found")
                if chat_id is not None and normalize_chat_id(chat_id) != player.chat_id:
                    raise InvalidInput("Chat username cannot be changed")
                player.nick = nick
                player.contact_id = _clean(contact_id)
                player.phone = _clean(phone)
                try:
                    await session.commit()
                except IntegrityError:
                    await session.rollback()
                    raise Conflict("Contact is already registered to another player") from None
                await session.refresh(player)
                return player

    async def delete(self, player_id: int) -> None:
        """Delete a player with their queue slot and past assignments. Refused while they are in a running game."""
        async with self._lock:
            async with self._session_factory() as session:
                player = await session.get(
                    Player,
                    player_id,
                    options=[
                        selectinload(Player.queue_entry),
                        selectinload(Player.assignments),
                        selectinload(Player.registration_logs),
                    ],
                )
                if not player:
                    raise NotFound("Player not found")
                in_game = await session.execute(
                    select(Assignment.id)
                    .join(GameSession, Assignment.session_id == GameSession.id)
                    .where(Assignment.player_id == player_id, GameSession.status == STATUS_ACTIVE)
                )
                if in_game.first() is not None:
                    raise Conflict("Player is in the running game. End the game first.")
                await session.delete(player)
                await session.commit()
        logger.info("Player %s deleted", player_id)

    async def register_self(self, contact_id: str, chat_id: str, nick: str) -> Player:
        """Self-service registration from the messaging bot. One player per contact."""
        contact_id = str(contact_id)
        if await self.get_by_contact(contact_id):
            raise Conflict("You are already registered. Ask an admin to change your details.")
        return await self.create(chat_id, nick, contact_id=contact_id)


async def find_by_chat_id(session: AsyncSession, chat_id: str) -> Optional[Player]:
    """Look up a player by chat login (normalized)."""
    result = await session.execute(select(Player).where(Player.chat_id == normalize_chat_id(chat_id)))
    return result.scalar_one_or_none()
