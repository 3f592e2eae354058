"""Registration audit log - one row per chat registration attempt."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bot.models.base import Base, utcnow

LOG_SUCCESS = "success"
LOG_FAILED = "failed"
LOG_ALREADY_QUEUED = "already_queued"


class RegistrationLog(Base):
    """Append-only record of a !reg attempt."""

    __tablename__ = "registration_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    player_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("players.id", ondelete="SET NULL"), nullable=True
    )
    chat_id: Mapped[str] = mapped_column(String(64), nullable=False)  # raw identity from chat
    nick: Mapped[str] = mapped_column(String(64), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, index=True)  # success, failed, already_queued
    message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)

    player: Mapped[Optional["Player"]] = relationship("Player", back_populates="registration_logs")
