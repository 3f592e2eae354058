"""Config and chat connection API: chat channel setting, status, connect/disconnect."""
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import text

from bot.services.config_store import CHAT_CHANNEL
from bot.services.state import GameServices
from web.api.utils import get_bot_client, get_services
from web.bot_client import BotClient

logger = logging.getLogger("mafia.web.settings")

router = APIRouter(prefix="/api", tags=["settings"])


class ConfigUpdate(BaseModel):
    value: str


class ChatConnect(BaseModel):
    channel: str = Field(min_length=1, max_length=64)


@router.get("/config/{key}")
async def get_config(key: str, services: GameServices = Depends(get_services)):
    return {"key": key, "value": await services.settings.get(key)}


@router.put("/config/{key}")
async def set_config(
    key: str,
    body: ConfigUpdate,
    services: GameServices = Depends(get_services),
    bot: BotClient = Depends(get_bot_client),
):
    """Save a config value. Changing the chat channel reconnects the bot's chat listener (best-effort)."""
    value = await services.settings.set(key, body.value)
    response = {"key": key, "value": value}
    if key == CHAT_CHANNEL:
        response["chat"] = await bot.reconnect_chat(value)
    return response


@router.get("/status")
async def status(
    services: GameServices = Depends(get_services),
    bot: BotClient = Depends(get_bot_client),
):
    """Database, bot and chat connection status for the dashboard."""
    db_ok = True
    try:
        async with services.session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning("Database check failed: %s", e)
        db_ok = False
    bot_status = await bot.get_status()
    return {
        "db": db_ok,
        "bot": bot_status is not None,
        "chat": bot_status.get("chat") if bot_status else None,
        "chat_channel": await services.settings.get(CHAT_CHANNEL),
    }


@router.post("/chat/connect")
async def connect_chat(
    body: ChatConnect,
    services: GameServices = Depends(get_services),
    bot: BotClient = Depends(get_bot_client),
):
    """Save the chat channel and (re)connect the listener to it."""
    channel = await services.settings.set(CHAT_CHANNEL, body.channel)
    chat = await bot.reconnect_chat(channel)
    return {"ok": chat is not None, "channel": channel, "chat": chat}


@router.post("/chat/disconnect")
async def disconnect_chat(bot: BotClient = Depends(get_bot_client)):
    chat = await bot.disconnect_chat()
    return {"ok": chat is not None, "chat": chat}
