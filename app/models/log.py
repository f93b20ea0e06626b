"""Persisted HTTP request log."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, Integer, String, Text

from .base import Base


class RequestLog(Base):
    """One handled request, with the caller's encrypted session descriptor."""

    __tablename__ = "request_logs"

    id = Column(Integer, primary_key=True, index=True)
    timestamp = Column(DateTime, nullable=False, default=datetime.utcnow, index=True)
    request_id = Column(String(64), nullable=False, index=True)
    method = Column(String(10), nullable=False)
    path = Column(String(2048), nullable=False)
    status_code = Column(Integer, nullable=False)
    duration_ms = Column(Integer, nullable=True)
    client_ip = Column(String(64), nullable=True)
    user_id = Column(String(36), nullable=True, index=True)
    session_token = Column(Text, nullable=True)


__all__ = ["RequestLog"]
