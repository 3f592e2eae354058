"""Game session and role assignment models."""
from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import JSON, Boolean, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from bot.models.base import Base, utcnow

STATUS_ACTIVE = "active"
STATUS_ENDED = "ended"


class GameSession(Base):
    """One game. At most one row has active_slot=1 (unique), i.e. at most one active session."""

    __tablename__ = "game_sessions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=STATUS_ACTIVE)  # active, ended
    active_slot: Mapped[Optional[int]] = mapped_column(Integer, unique=True, nullable=True)
    # Not a foreign key: presets may be deleted while the session keeps its own copy of roles
    preset_id: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    preset_name: Mapped[str] = mapped_column(String(64), nullable=False)
    roles: Mapped[list[str]] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow)
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    assignments = relationship(
        "Assignment",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="Assignment.seat",
    )


class Assignment(Base):
    """Binds one drafted player to one role in a session."""

    __tablename__ = "assignments"
    __table_args__ = (UniqueConstraint("session_id", "player_id", name="uq_assignment_session_player"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[int] = mapped_column(
        ForeignKey("game_sessions.id", ondelete="CASCADE"), nullable=False, index=True
    )
    player_id: Mapped[int] = mapped_column(ForeignKey("players.id", ondelete="CASCADE"), nullable=False)
    seat: Mapped[int] = mapped_column(Integer, nullable=False)  # 0-based draft order
    role: Mapped[str] = mapped_column(String(64), nullable=False)
    delivered: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    delivered_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    session: Mapped["GameSession"] = relationship("GameSession", back_populates="assignments")
    player: Mapped["Player"] = relationship("Player", back_populates="assignments")
