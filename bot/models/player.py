"""Player model."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bot.models.base import Base, utcnow


def normalize_chat_id(value: str | None) -> str:
    """Canonical form of a chat login: trimmed, no leading @, lower-case."""
    return (value or "").strip().lstrip("@").strip().lower()


class Player(Base):
    """Stream viewer who can queue for games. Discord contact is optional (needed for role DMs)."""

    __tablename__ = "players"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    chat_id: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)  # Twitch login
    nick: Mapped[str] = mapped_column(String(64), nullable=False)
    contact_id: Mapped[Optional[str]] = mapped_column(String(32), unique=True, nullable=True)  # Discord user ID
    phone: Mapped[Optional[str]] = mapped_column(String(32), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    queue_entry = relationship(
        "QueueEntry", back_populates="player", uselist=False, cascade="all, delete-orphan"
    )
    assignments = relationship(
        "Assignment", back_populates="player", cascade="all, delete-orphan"
    )
    registration_logs = relationship("RegistrationLog", back_populates="player")
