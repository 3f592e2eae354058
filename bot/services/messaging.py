"""Private messaging sink interface used for role cards and queue confirmations."""
from __future__ import annotations

import asyncio
from typing import Protocol

from bot.services.errors import TransportFailure


class MessageSink(Protocol):
    async def send_private_message(self, contact_id: str, text: str) -> None:
        """Deliver ``text`` privately to ``contact_id``. Raises TransportFailure on failure."""
        ...


async def send_with_timeout(sink: MessageSink, contact_id: str, text: str, timeout: float) -> None:
    """Send through ``sink``; a timeout counts as a transport failure."""
    try:
        await asyncio.wait_for(sink.send_private_message(contact_id, text), timeout=timeout)
    except asyncio.TimeoutError:
        raise TransportFailure(f"Timed out after {timeout:g}s sending to {contact_id}") from None
