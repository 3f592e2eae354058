"""Twitch chat client (twitchio EventSub) feeding chat messages to the chat listener."""
from __future__ import annotations

import logging
from typing import Callable

import twitchio
from twitchio import eventsub

import config
from bot.services.chat_listener import MessageHandler

LOGGER = logging.getLogger("mafia.twitch")


class ChannelNotFound(Exception):
    pass


class TwitchChatClient(twitchio.Client):
    """Watches one channel's chat through an EventSub websocket, as the bot account."""

    def __init__(
        self,
        channel: str,
        on_message: MessageHandler,
        on_connected: Callable[[], None],
        *,
        client_id: str,
        client_secret: str,
        bot_id: str,
        token: str,
        refresh_token: str,
    ) -> None:
        super().__init__(client_id=client_id, client_secret=client_secret, bot_id=bot_id)
        self.channel = channel
        self._on_message = on_message
        self._on_connected = on_connected
        self._token = token
        self._refresh_token = refresh_token
        self._broadcaster_id: str | None = None

    async def setup_hook(self) -> None:
        await self.add_token(self._token, self._refresh_token)
        users = await self.fetch_users(logins=[self.channel])
        if not users:
            raise ChannelNotFound(f"Twitch channel '{self.channel}' not found")
        self._broadcaster_id = users[0].id
        await self.subscribe_websocket(
            eventsub.ChatMessageSubscription(broadcaster_user_id=self._broadcaster_id, user_id=self.bot_id),
            as_bot=True,
        )

    async def event_ready(self) -> None:
        LOGGER.info("Listening to chat of %s (ID: %s)", self.channel, self._broadcaster_id)
        self._on_connected()

    async def event_message(self, payload: twitchio.ChatMessage) -> None:
        if payload.broadcaster and payload.broadcaster.id != self._broadcaster_id:
            return
        chatter = payload.chatter.name or ""
        try:
            await self._on_message(chatter, payload.text)
        except Exception:
            LOGGER.exception("Failed to handle chat message from %s", chatter)

    async def run(self) -> None:
        await self.start(with_adapter=False, load_tokens=False, save_tokens=False)


def twitch_client_factory(channel: str, on_message: MessageHandler, on_connected: Callable[[], None]) -> TwitchChatClient:
    """ChatListener factory using credentials from config."""
    return TwitchChatClient(
        channel,
        on_message,
        on_connected,
        client_id=config.TWITCH_CLIENT_ID,
        client_secret=config.TWITCH_CLIENT_SECRET,
        bot_id=config.TWITCH_BOT_ID,
        token=config.TWITCH_BOT_TOKEN,
        refresh_token=config.TWITCH_BOT_REFRESH_TOKEN,
    )
