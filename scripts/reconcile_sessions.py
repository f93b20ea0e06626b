"""Advance task sessions whose partner registered or got approved out of band.

Run periodically (cron) next to the API:

    python scripts/reconcile_sessions.py
"""
import sys
import os
sys.path.append(os.getcwd())
import asyncio
import logging

from app.application.use_cases.task_session_use_cases import TaskSessionService
from app.database import dispose_engine, session_scope
from app.infrastructure.persistence.repositories_sqlalchemy import (
    SQLAlchemyNotificationRepository,
    SQLAlchemyRoomRepository,
    SQLAlchemyTaskSessionRepository,
    SQLAlchemyUserDirectory,
)
from app.services.notifications import NotificationService
from app.services.rooms import DailyRoomProvider

logger = logging.getLogger("scripts.reconcile_sessions")


async def reconcile() -> int:
    async with session_scope() as session:
        service = TaskSessionService(
            sessions=SQLAlchemyTaskSessionRepository(session),
            rooms=SQLAlchemyRoomRepository(session),
            users=SQLAlchemyUserDirectory(session),
            room_provider=DailyRoomProvider(),
            notifications=NotificationService(SQLAlchemyNotificationRepository(session)),
        )
        return await service.reconcile_pending()


async def main() -> None:
    try:
        advanced = await reconcile()
    finally:
        await dispose_engine()
    print(f"Advanced {advanced} task session(s)")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    asyncio.run(main())
