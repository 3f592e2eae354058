"""Discord direct messages as the private messaging sink."""
from __future__ import annotations

import discord

from bot.services.errors import TransportFailure


class DiscordMessageSink:
    def __init__(self, client: discord.Client):
        self._client = client

    async def send_private_message(self, contact_id: str, text: str) -> None:
        try:
            user_id = int(contact_id)
        except (TypeError, ValueError):
            raise TransportFailure(f"Invalid Discord user ID: {contact_id!r}") from None
        try:
            user = self._client.get_user(user_id) or await self._client.fetch_user(user_id)
            await user.send(text)
        except discord.NotFound:
            raise TransportFailure(f"Discord user {user_id} not found") from None
        except discord.Forbidden:
            # DMs closed or no shared server
            raise TransportFailure(f"Discord user {user_id} does not accept DMs from the bot") from None
        except discord.HTTPException as e:
            raise TransportFailure(f"Discord error sending to {user_id}: {e}") from None
