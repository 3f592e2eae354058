"""Database models."""
from bot.models.base import Base, init_db
from bot.models.player import Player
from bot.models.queue_entry import QueueEntry
from bot.models.role_preset import RolePreset
from bot.models.game import Assignment, GameSession
from bot.models.registration_log import RegistrationLog
from bot.models.config_value import ConfigValue

__all__ = [
    "Base",
    "Player",
    "QueueEntry",
    "RolePreset",
    "GameSession",
    "Assignment",
    "RegistrationLog",
    "ConfigValue",
    "init_db",
]
