"""Configuration for the Mafia live-stream bot and admin API."""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _parse_int(value: str | None, default: int) -> int:
    if not value:
        return default
    try:
        return int(value.strip())
    except ValueError:
        return default


def _parse_float(value: str | None, default: float) -> float:
    if not value:
        return default
    try:
        return float(value.strip())
    except ValueError:
        return default


# Discord (private role delivery, /register)
DISCORD_TOKEN = os.getenv("DISCORD_TOKEN", "")

# Web -> Bot internal API (DMs, chat status, chat reconnect)
BOT_INTERNAL_URL = os.getenv("BOT_INTERNAL_URL", "http://bot:8001")  # URL the web API uses to reach the bot
INTERNAL_API_SECRET = os.getenv("INTERNAL_API_SECRET", "")  # Shared secret for web->bot requests
BOT_INTERNAL_PORT = _parse_int(os.getenv("BOT_INTERNAL_PORT"), 8001)

# Twitch chat (registration command source)
TWITCH_CLIENT_ID = os.getenv("TWITCH_CLIENT_ID", "")
TWITCH_CLIENT_SECRET = os.getenv("TWITCH_CLIENT_SECRET", "")
TWITCH_BOT_ID = os.getenv("TWITCH_BOT_ID", "")
TWITCH_BOT_TOKEN = os.getenv("TWITCH_BOT_TOKEN", "")
TWITCH_BOT_REFRESH_TOKEN = os.getenv("TWITCH_BOT_REFRESH_TOKEN", "")
CHAT_CHANNEL = os.getenv("CHAT_CHANNEL", "")  # Default channel until set from the dashboard

# Database
DATABASE_URL = os.getenv(
    "DATABASE_URL",
    f"sqlite+aiosqlite:///{Path(__file__).parent / 'mafia.db'}",
)

# Game / queue policy
REGISTRATION_COMMAND = os.getenv("REGISTRATION_COMMAND", "!reg").strip().lower()
QUEUE_CAPACITY = _parse_int(os.getenv("QUEUE_CAPACITY"), 0)  # 0 = uncapped until draft time
REGISTRATION_LOG_LIMIT = _parse_int(os.getenv("REGISTRATION_LOG_LIMIT"), 50)

# Chat reconnect policy: fixed delay, bounded attempts (total tries, first one included)
CHAT_RECONNECT_DELAY = _parse_float(os.getenv("CHAT_RECONNECT_DELAY"), 5.0)
CHAT_MAX_RECONNECT_ATTEMPTS = _parse_int(os.getenv("CHAT_MAX_RECONNECT_ATTEMPTS"), 10)

# Per-DM timeout for role delivery (seconds)
ROLE_SEND_TIMEOUT = _parse_float(os.getenv("ROLE_SEND_TIMEOUT"), 10.0)

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
