"""Single-row counter backing archival folder allocation."""

from __future__ import annotations

from sqlalchemy import BigInteger, Column, String

from app.models.base import Base

RECORDING_FOLDER_COUNTER = "processed"


class FolderCounter(Base):
    __tablename__ = "folder_counters"

    name = Column(String(64), primary_key=True)
    value = Column(BigInteger, nullable=False, default=0)


__all__ = ["FolderCounter", "RECORDING_FOLDER_COUNTER"]
