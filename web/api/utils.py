"""Shared API utilities: dependency providers (overridable in tests)."""
from __future__ import annotations

from functools import lru_cache

from bot.models.base import async_session_factory
from bot.services.state import GameServices
from web.bot_client import BotClient


@lru_cache(maxsize=1)
def get_services() -> GameServices:
    """Process-wide services bound to the configured database."""
    return GameServices(async_session_factory)


@lru_cache(maxsize=1)
def get_bot_client() -> BotClient:
    return BotClient()
