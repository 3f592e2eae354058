"""Client for the bot's internal HTTP server (Discord DMs, chat connection control)."""
from __future__ import annotations

import logging
from typing import Optional

import httpx

import config
from bot.services.errors import TransportFailure

logger = logging.getLogger("mafia.web.bot")


class BotClient:
    """Talks to bot/http_server.py. Also usable as the role dispatcher's message sink."""

    def __init__(self, base_url: Optional[str] = None, secret: Optional[str] = None, timeout: float = 10.0):
        self.base_url = (base_url if base_url is not None else config.BOT_INTERNAL_URL).rstrip("/")
        self.secret = secret if secret is not None else config.INTERNAL_API_SECRET
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.secret)

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self.secret}"}

    async def _request(self, method: str, path: str, payload: Optional[dict] = None) -> httpx.Response:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            return await client.request(method, f"{self.base_url}{path}", json=payload, headers=self._headers())

    async def send_private_message(self, contact_id: str, text: str) -> None:
        if not self.configured:
            raise TransportFailure("Bot internal API not configured (INTERNAL_API_SECRET)")
        try:
            r = await self._request("POST", "/internal/send-dm", {"contact_id": contact_id, "text": text})
        except httpx.HTTPError as e:
            raise TransportFailure(f"Bot unreachable: {e}") from None
        if r.status_code != 200:
            try:
                error = r.json().get("error") or r.text
            except ValueError:
                error = r.text
            raise TransportFailure(error or f"Bot returned {r.status_code}")

    async def get_status(self) -> Optional[dict]:
        """Bot status, or None if the bot is not reachable."""
        if not self.configured:
            return None
        try:
            r = await self._request("GET", "/internal/status")
        except httpx.HTTPError as e:
            logger.warning("Bot status check failed: %s", e)
            return None
        if r.status_code != 200:
            return None
        return r.json()

    async def reconnect_chat(self, channel: Optional[str] = None) -> Optional[dict]:
        """Ask the bot to (re)connect chat. Returns the new chat status or None if the bot is unreachable."""
        return await self._chat_command("/internal/chat/reconnect", {"channel": channel} if channel is not None else {})

    async def disconnect_chat(self) -> Optional[dict]:
        return await self._chat_command("/internal/chat/disconnect", {})

    async def _chat_command(self, path: str, payload: dict) -> Optional[dict]:
        if not self.configured:
            return None
        try:
            r = await self._request("POST", path, payload)
        except httpx.HTTPError as e:
            logger.warning("Chat command %s failed: %s", path, e)
            return None
        if r.status_code != 200:
            logger.warning("Chat command %s rejected: %s %s", path, r.status_code, r.text)
            return None
        return r.json().get("chat")
