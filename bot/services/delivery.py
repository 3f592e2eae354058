"""Role delivery: DM each drafted player their secret role."""
from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Optional

from bot.models import Assignment
from bot.services.errors import NoActiveSession, TransportFailure
from bot.services.game import GameSessionManager
from bot.services.messaging import MessageSink, send_with_timeout

logger = logging.getLogger("mafia.delivery")


def role_card(nick: str, role: str) -> str:
    return (
        "🎮 You're in the Mafia game!\n"
        f"👤 Your nick: {nick}\n"
        f"🎭 Your role: {role}\n\n"
        "Keep it secret! 🤐"
    )


@dataclass
class DispatchReport:
    session_id: int
    attempted: int = 0
    delivered: int = 0
    failed: int = 0
    skipped: int = 0  # no Discord contact on file, never deliverable
    stopped_early: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


class RoleDispatcher:
    """Sends undelivered role cards for the active game. Safe to call repeatedly.

    Runs are serialized on ``lock`` (shared by all dispatchers of one process), so an
    overlapping call only sees what the previous run left undelivered. This is not the
    writer lock: ending the game must stay possible while cards are going out.
    """

    def __init__(
        self,
        game: GameSessionManager,
        sink: MessageSink,
        send_timeout: float = 10.0,
        lock: Optional[asyncio.Lock] = None,
    ):
        self._game = game
        self._sink = sink
        self._send_timeout = send_timeout
        self._lock = lock or asyncio.Lock()

    async def dispatch(self) -> DispatchReport:
        async with self._lock:
            return await self._dispatch()

    async def _dispatch(self) -> DispatchReport:
        current = await self._game.current()
        if not current:
            raise NoActiveSession()
        report = DispatchReport(session_id=current.id)
        pending: list[Assignment] = [a for a in current.assignments if not a.delivered]

        for assignment in pending:
            player = assignment.player
            if not player.contact_id:
                report.skipped += 1
                continue
            # The game may have been ended by the admin while we were sending
            if not await self._game.is_active(current.id):
                report.stopped_early = True
                logger.info("Game %s ended during role delivery; stopping", current.id)
                break
            report.attempted += 1
            try:
                await send_with_timeout(
                    self._sink, player.contact_id, role_card(player.nick, assignment.role), self._send_timeout
                )
            except TransportFailure as e:
                report.failed += 1
                logger.warning("Role card for %s (%s) not delivered: %s", player.nick, player.contact_id, e.message)
                continue
            await self._game.mark_delivered(assignment.id)
            report.delivered += 1

        logger.info(
            "Role delivery for game %s: %d/%d delivered, %d failed, %d without contact",
            report.session_id,
            report.delivered,
            report.attempted,
            report.failed,
            report.skipped,
        )
        return report
