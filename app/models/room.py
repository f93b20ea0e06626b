"""SQLAlchemy model for provider-backed call rooms."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, String

from app.models.base import Base


class RoomRecord(Base):
    __tablename__ = "rooms"

    id = Column(String(36), primary_key=True)
    name = Column(String(255), nullable=False)
    provider_room_name = Column(String(255), nullable=False, unique=True)
    url = Column(String(2048), nullable=False)
    created_by = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )
    expires_at = Column(DateTime, nullable=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)


__all__ = ["RoomRecord"]
