"""API routes for players, the queue, role presets, the game and registration logs."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field

import config
from bot.models import GameSession
from bot.services.state import GameServices
from web.api.utils import get_bot_client, get_services
from web.bot_client import BotClient

router = APIRouter(prefix="/api", tags=["game"])


# --- Pydantic schemas ---


class PlayerCreate(BaseModel):
    chat_id: str = Field(min_length=1, max_length=64)
    nick: str = Field(min_length=1, max_length=64)
    contact_id: Optional[str] = None  # Discord user ID (string: snowflakes exceed JS precision)
    phone: Optional[str] = None


class PlayerUpdate(BaseModel):
    nick: str = Field(min_length=1, max_length=64)
    contact_id: Optional[str] = None
    phone: Optional[str] = None
    chat_id: Optional[str] = None  # read-only; accepted only when unchanged


class PlayerResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    chat_id: str
    nick: str
    contact_id: Optional[str]
    phone: Optional[str]
    created_at: datetime


class QueueAdd(BaseModel):
    player_id: int


class QueueEntryResponse(BaseModel):
    position: int
    entry_id: int
    player: PlayerResponse
    added_at: datetime


class PresetCreate(BaseModel):
    name: str = Field(min_length=1, max_length=64)
    roles: list[str]
    player_count: Optional[int] = None  # defaults to len(roles); must match if given


class PresetResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    player_count: int
    roles: list[str]
    created_at: datetime


class GameStart(BaseModel):
    preset_id: int
    player_count: Optional[int] = None


class AssignmentResponse(BaseModel):
    id: int
    seat: int
    player_id: int
    nick: str
    chat_id: str
    has_contact: bool
    role: str
    delivered: bool
    delivered_at: Optional[datetime]


class GameResponse(BaseModel):
    id: int
    status: str
    preset_id: Optional[int]
    preset_name: str
    roles: list[str]
    created_at: datetime
    ended_at: Optional[datetime]
    assignments: list[AssignmentResponse]


class RegistrationLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    player_id: Optional[int]
    chat_id: str
    nick: str
    status: str
    message: Optional[str]
    created_at: datetime


def _game_response(game: GameSession) -> GameResponse:
    return GameResponse(
        id=game.id,
        status=game.status,
        preset_id=game.preset_id,
        preset_name=game.preset_name,
        roles=list(game.roles),
        created_at=game.created_at,
        ended_at=game.ended_at,
        assignments=[
            AssignmentResponse(
                id=a.id,
                seat=a.seat,
                player_id=a.player_id,
                nick=a.player.nick,
                chat_id=a.player.chat_id,
                has_contact=bool(a.player.contact_id),
                role=a.role,
                delivered=a.delivered,
                delivered_at=a.delivered_at,
            )
            for a in game.assignments
        ],
    )


# --- Players ---


@router.get("/players", response_model=list[PlayerResponse])
async def list_players(services: GameServices = Depends(get_services)):
    """All players, newest first."""
    return await services.players.list()


@router.post("/players", response_model=PlayerResponse)
async def create_player(body: PlayerCreate, services: GameServices = Depends(get_services)):
    return await services.players.create(body.chat_id, body.nick, contact_id=body.contact_id, phone=body.phone)


@router.put("/players/{player_id}", response_model=PlayerResponse)
async def update_player(player_id: int, body: PlayerUpdate, services: GameServices = Depends(get_services)):
    return await services.players.update(
        player_id, body.nick, contact_id=body.contact_id, phone=body.phone, chat_id=body.chat_id
    )


@router.delete("/players/{player_id}")
async def delete_player(player_id: int, services: GameServices = Depends(get_services)):
    """Delete a player (also drops their queue slot). Refused while they are in the running game."""
    await services.players.delete(player_id)
    return {"ok": True}


# --- Queue ---


@router.get("/queue", response_model=list[QueueEntryResponse])
async def get_queue(services: GameServices = Depends(get_services)):
    """Queue in FIFO order with 1-based positions."""
    return [
        QueueEntryResponse(
            position=q.position,
            entry_id=q.entry_id,
            player=PlayerResponse.model_validate(q.player),
            added_at=q.added_at,
        )
        for q in await services.queue.list()
    ]


@router.post("/queue")
async def add_to_queue(body: QueueAdd, services: GameServices = Depends(get_services)):
    """Admin enqueue (same rules as chat registration, without the audit log)."""
    position = await services.queue.enqueue(body.player_id)
    return {"ok": True, "position": position}


@router.delete("/queue/{player_id}")
async def remove_from_queue(player_id: int, services: GameServices = Depends(get_services)):
    removed = await services.queue.remove(player_id)
    return {"ok": True, "removed": removed}


@router.post("/queue/clear")
async def clear_queue(services: GameServices = Depends(get_services)):
    cleared = await services.queue.clear()
    return {"ok": True, "cleared": cleared}


# --- Role presets ---


@router.get("/role-presets", response_model=list[PresetResponse])
async def list_presets(services: GameServices = Depends(get_services)):
    return await services.presets.list()


@router.post("/role-presets", response_model=PresetResponse)
async def create_preset(body: PresetCreate, services: GameServices = Depends(get_services)):
    return await services.presets.create(body.name, body.roles, player_count=body.player_count)


@router.delete("/role-presets/{preset_id}")
async def delete_preset(preset_id: int, services: GameServices = Depends(get_services)):
    deleted = await services.presets.delete(preset_id)
    return {"ok": True, "deleted": deleted}


# --- Game ---


@router.get("/game/current", response_model=Optional[GameResponse])
async def current_game(services: GameServices = Depends(get_services)):
    """Active game with its assignments, or null."""
    game = await services.game.current()
    return _game_response(game) if game else None


@router.post("/game/start", response_model=GameResponse)
async def start_game(body: GameStart, services: GameServices = Depends(get_services)):
    """Draft the head of the queue and deal shuffled roles from the preset."""
    game = await services.game.start(body.preset_id, body.player_count)
    return _game_response(game)


@router.post("/game/send-roles")
async def send_roles(
    services: GameServices = Depends(get_services),
    bot: BotClient = Depends(get_bot_client),
):
    """DM role cards (via the bot) to drafted players who have not received theirs yet."""
    report = await services.dispatcher(bot).dispatch()
    return report.to_dict()


@router.post("/game/end")
async def end_game(services: GameServices = Depends(get_services)):
    """End the running game and clear the whole queue."""
    result = await services.game.end()
    return {"ok": True, "session_id": result.session_id, "cleared": result.cleared}


@router.get("/game/history", response_model=list[GameResponse])
async def game_history(limit: int = 20, services: GameServices = Depends(get_services)):
    games = await services.game.history(limit=max(1, min(limit, 100)))
    return [_game_response(g) for g in games]


# --- Registration logs ---


@router.get("/registration-logs", response_model=list[RegistrationLogResponse])
async def registration_logs(services: GameServices = Depends(get_services)):
    """Most recent chat registration attempts, newest first."""
    return await services.registration.recent_logs(config.REGISTRATION_LOG_LIMIT)


@router.get("/registration-logs/count")
async def registration_log_counts(services: GameServices = Depends(get_services)):
    return await services.registration.log_counts()
