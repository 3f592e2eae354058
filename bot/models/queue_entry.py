"""Queue entry model - a player waiting for the next game."""
from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bot.models.base import Base, utcnow


class QueueEntry(Base):
    """FIFO queue slot. ``id`` is the ordering key (AUTOINCREMENT: strictly increasing, never reused)."""

    __tablename__ = "queue_entries"
    __table_args__ = {"sqlite_autoincrement": True}

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    player_id: Mapped[int] = mapped_column(
        ForeignKey("players.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    added_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)

    player: Mapped["Player"] = relationship("Player", back_populates="queue_entry")
