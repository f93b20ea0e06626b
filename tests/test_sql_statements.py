"""The concurrency-critical statements as PostgreSQL renders them."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy.dialects import postgresql
from sqlalchemy.schema import CreateIndex

from app.domain.models import TaskSession
from app.infrastructure.persistence.repositories_sqlalchemy import (
    insert_session_statement,
    next_folder_statement,
    raise_folder_statement,
    select_session_for_update,
)
from app.models import RECORDING_FOLDER_COUNTER, TaskSessionRecord


def render(statement) -> str:
    return " ".join(str(statement.compile(dialect=postgresql.dialect())).split())


def test_folder_allocation_is_a_single_upsert_increment():
    sql = render(next_folder_statement(RECORDING_FOLDER_COUNTER))

    assert sql.startswith("INSERT INTO folder_counters (name, value)")
    assert "ON CONFLICT (name) DO UPDATE SET value = " in sql
    assert "folder_counters.value +" in sql
    assert sql.endswith("RETURNING folder_counters.value")


def test_folder_override_only_ever_raises_the_counter():
    sql = render(raise_folder_statement(RECORDING_FOLDER_COUNTER, 42))

    assert "ON CONFLICT (name) DO UPDATE" in sql
    assert "greatest(folder_counters.value, excluded.value)" in sql


def test_session_lock_selects_for_update():
    sql = render(select_session_for_update("session-1"))

    assert sql.startswith("SELECT")
    assert "WHERE task_sessions.id = " in sql
    assert sql.endswith("FOR UPDATE")


def test_session_insert_yields_to_the_active_session_index():
    now = datetime(2026, 1, 1)
    session = TaskSession(
        id="s-1",
        task_type="free-conversation",
        user_id="u-1",
        created_at=now,
        updated_at=now,
    )

    sql = render(insert_session_statement(session))

    assert "ON CONFLICT (user_id, task_type) WHERE status <> 'completed' DO NOTHING" in sql
    assert sql.endswith("RETURNING task_sessions.id")


def test_active_session_index_is_unique_and_partial():
    [index] = [i for i in TaskSessionRecord.__table__.indexes if i.name == "uq_task_sessions_active_user_task"]

    ddl = render(CreateIndex(index))

    assert ddl.startswith("CREATE UNIQUE INDEX uq_task_sessions_active_user_task ON task_sessions")
    assert ddl.endswith("(user_id, task_type) WHERE status <> 'completed'")
