"""SQLAlchemy model for paired recording task sessions."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, Column, DateTime
from sqlalchemy import Enum as SqlEnum
from sqlalchemy import ForeignKey, Index, String, text

from app.domain.models import PartnerStatus, ReviewerStatus, SessionStatus
from app.models.base import Base


def _values(enum_cls):
    return [member.value for member in enum_cls]


# At most one unfinished session per initiator and task type.
ACTIVE_SESSION_PREDICATE = text("status <> 'completed'")


class TaskSessionRecord(Base):
    __tablename__ = "task_sessions"
    __table_args__ = (
        Index(
            "uq_task_sessions_active_user_task",
            "user_id",
            "task_type",
            unique=True,
            postgresql_where=ACTIVE_SESSION_PREDICATE,
        ),
        Index("ix_task_sessions_partner_email", "partner_email"),
    )

    id = Column(String(36), primary_key=True)
    task_type = Column(String(64), nullable=False)
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    partner_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )
    partner_email = Column(String(255), nullable=True)
    partner_status = Column(
        SqlEnum(PartnerStatus, name="partner_status", values_callable=_values),
        nullable=False,
        default=PartnerStatus.NONE,
    )
    status = Column(
        SqlEnum(SessionStatus, name="task_session_status", values_callable=_values),
        nullable=False,
        default=SessionStatus.INVITING_PARTNER,
        index=True,
    )
    room_id = Column(
        String(36),
        ForeignKey("rooms.id", ondelete="SET NULL"),
        nullable=True,
        unique=True,
    )
    reviewer_status = Column(
        SqlEnum(ReviewerStatus, name="reviewer_status", values_callable=_values),
        nullable=True,
    )
    paid = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow)


__all__ = ["ACTIVE_SESSION_PREDICATE", "TaskSessionRecord"]
