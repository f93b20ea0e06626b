"""Static catalog of recording task types."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping

from app.domain.errors import InvalidTaskType


@dataclass(frozen=True)
class TaskType:
    id: str
    name: str
    requires_partner: bool
    instructions: str


TASK_TYPES: tuple[TaskType, ...] = (
    TaskType(
        id="free-conversation",
        name="Free Conversation",
        requires_partner=True,
        instructions=(
            "Talk with your partner about any everyday topic for ten to fifteen "
            "minutes. Keep it natural and avoid talking over each other."
        ),
    ),
    TaskType(
        id="customer-support-roleplay",
        name="Customer Support Role-play",
        requires_partner=True,
        instructions=(
            "One of you plays a customer with a billing problem, the other the "
            "support agent. Swap roles halfway through."
        ),
    ),
    TaskType(
        id="interview",
        name="Interview",
        requires_partner=True,
        instructions=(
            "Interview your partner about their work or studies. Ask open "
            "questions and follow up on the answers."
        ),
    ),
    TaskType(
        id="storytelling",
        name="Storytelling",
        requires_partner=False,
        instructions="Tell a story from your childhood in your own words.",
    ),
    TaskType(
        id="read-aloud",
        name="Read Aloud",
        requires_partner=False,
        instructions="Read the displayed passage at a comfortable, even pace.",
    ),
)

_BY_ID: Mapping[str, TaskType] = {task.id: task for task in TASK_TYPES}


def get_task_type(task_type_id: str) -> TaskType:
    """Return the catalog entry or raise ``InvalidTaskType``."""

    task = _BY_ID.get(task_type_id)
    if task is None:
        raise InvalidTaskType(f"Unknown task type '{task_type_id}'")
    return task


__all__ = ["TASK_TYPES", "TaskType", "get_task_type"]
