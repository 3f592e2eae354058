"""Dashboard-editable config values (key/value table)."""
from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

import config
from bot.models import ConfigValue
from bot.services.errors import NotFound

CHAT_CHANNEL = "chat_channel"


def _defaults() -> dict[str, str]:
    return {CHAT_CHANNEL: config.CHAT_CHANNEL}


class ConfigStore:
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @staticmethod
    def _check(key: str) -> None:
        if key not in _defaults():
            raise NotFound(f"Unknown config key '{key}'")

    async def get(self, key: str) -> str:
        self._check(key)
        async with self._session_factory() as session:
            row = await session.get(ConfigValue, key)
            return row.value if row else _defaults()[key]

    async def set(self, key: str, value: str) -> str:
        self._check(key)
        value = (value or "").strip()
        if key == CHAT_CHANNEL:
            value = value.lstrip("@").lower()
        async with self._session_factory() as session:
            row = await session.get(ConfigValue, key)
            if row:
                row.value = value
            else:
                session.add(ConfigValue(key=key, value=value))
            await session.commit()
        return value
