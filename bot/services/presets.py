"""Role preset catalog. Presets are never edited: delete and recreate instead."""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from bot.models import RolePreset
from bot.services.errors import DuplicateName, InvalidPreset, PresetNotFound

logger = logging.getLogger("mafia.presets")


def validate_roles(roles: list[str], player_count: Optional[int] = None) -> list[str]:
    """Strip role labels and check them against the declared player count."""
    cleaned = [(r or "").strip() for r in roles or []]
    if not cleaned:
        raise InvalidPreset("A preset needs at least one role")
    if any(not r for r in cleaned):
        raise InvalidPreset("Role names cannot be empty")
    if player_count is not None and player_count != len(cleaned):
        raise InvalidPreset(
            f"Number of roles ({len(cleaned)}) must match the number of players ({player_count})"
        )
    return cleaned


class PresetCatalog:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create(self, name: str, roles: list[str], player_count: Optional[int] = None) -> RolePreset:
        name = (name or "").strip()
        if not name:
            raise InvalidPreset("Preset name is required")
        cleaned = validate_roles(roles, player_count)
        async with self._session_factory() as session:
            preset = RolePreset(name=name, player_count=len(cleaned), roles=cleaned)
            session.add(preset)
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                raise DuplicateName(f"A preset named '{name}' already exists") from None
            await session.refresh(preset)
        logger.info("Preset %s created (%d players)", preset.name, preset.player_count)
        return preset

    async def get(self, preset_id: int) -> RolePreset:
        async with self._session_factory() as session:
            preset = await session.get(RolePreset, preset_id)
            if not preset:
                raise PresetNotFound()
            return preset

    async def list(self) -> list[RolePreset]:
        """Presets by player count (smallest first), then name."""
        async with self._session_factory() as session:
            result = await session.execute(
                select(RolePreset).order_by(RolePreset.player_count, RolePreset.name)
            )
            return list(result.scalars().all())

    async def delete(self, preset_id: int) -> bool:
        """Delete a preset. No-op if it doesn't exist."""
        async with self._session_factory() as session:
            result = await session.execute(delete(RolePreset).where(RolePreset.id == preset_id))
            await session.commit()
            return (result.rowcount or 0) > 0
