"""FastAPI routers acting as controllers in the MVC architecture."""

from . import admin, auth, notifications, recordings, rooms, task_sessions, users

__all__ = [
    "admin",
    "auth",
    "notifications",
    "recordings",
    "rooms",
    "task_sessions",
    "users",
]
