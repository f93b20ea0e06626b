"""SQLAlchemy model for captured tracks and their archive descriptors."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime
from sqlalchemy import Enum as SqlEnum
from sqlalchemy import ForeignKey, Integer, String

from app.domain.models import RecordingType
from app.models.base import Base


class RecordingRecord(Base):
    __tablename__ = "recordings"

    id = Column(String(36), primary_key=True)
    room_id = Column(
        String(36),
        ForeignKey("rooms.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    recording_type = Column(
        SqlEnum(
            RecordingType,
            name="recording_type",
            values_callable=lambda e: [m.value for m in e],
        ),
        nullable=False,
    )
    speaker_id = Column(String(32), nullable=True)
    storage_key = Column(String(1024), nullable=False)
    storage_bucket = Column(String(255), nullable=False)
    file_name = Column(String(255), nullable=False)
    format = Column(String(16), nullable=False, default="webm")
    sample_rate = Column(Integer, nullable=False, default=48000)
    channels = Column(Integer, nullable=False, default=1)
    duration = Column(Integer, nullable=True)
    file_size = Column(Integer, nullable=True)
    reserved_folder = Column(String(16), nullable=True)
    processed_folder = Column(String(16), nullable=True, index=True)
    wav_key = Column(String(1024), nullable=True)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)


__all__ = ["RecordingRecord"]
