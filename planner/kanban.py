"""
Kanban board model.

Tasks are grouped into one column per workflow status:
  To do → In progress → On approval → Done

Dropping a card on a column is the only board interaction that talks to the
server, and only column membership (the task's status) is persisted. Order
inside a column is not.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Awaitable, Callable, Optional, Union

from .api.models import Task, TaskStatus

logger = logging.getLogger(__name__)


@dataclass
class Column:
    """One status column and the tasks currently in it."""
    status: TaskStatus
    title: str
    color: str
    tasks: list[Task] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "status": self.status.value,
            "title": self.title,
            "color": self.color,
            "count": len(self.tasks),
            "tasks": [task.model_dump(mode="json") for task in self.tasks],
        }


COLUMNS = [
    (TaskStatus.TODO, "To do", "yellow"),
    (TaskStatus.IN_PROGRESS, "In progress", "purple"),
    (TaskStatus.ON_APPROVAL, "On approval", "green"),
    (TaskStatus.DONE, "Done", "pink"),
]


@dataclass
class DropTarget:
    """What a dragged card was released over."""
    kind: str  # "column" or "card"
    status: Optional[TaskStatus] = None

    @classmethod
    def column(cls, status: Union[TaskStatus, str]) -> "DropTarget":
        return cls(kind="column", status=TaskStatus(status))


@dataclass(frozen=True)
class DeletePrompt:
    """Confirmation copy shown before deleting a task."""
    title: str
    body: str
    confirm_label: str
    destructive: bool


SOFT_DELETE_PROMPT = DeletePrompt(
    title="Move to trash",
    body="The task will be moved to the trash. You can restore it later.",
    confirm_label="Move to trash",
    destructive=False,
)

HARD_DELETE_PROMPT = DeletePrompt(
    title="Delete permanently",
    body="The task will be deleted permanently and cannot be restored. Are you sure?",
    confirm_label="Delete permanently",
    destructive=True,
)


def delete_prompt(hard: bool) -> DeletePrompt:
    return HARD_DELETE_PROMPT if hard else SOFT_DELETE_PROMPT


def task_day(task: Task) -> Optional[date]:
    """Day a task belongs to on the board: its due date, else its creation date."""
    moment = task.due_date or task.created_at
    if moment is None:
        return None
    return _local_date(moment)


def _local_date(moment: datetime) -> date:
    if moment.tzinfo is not None:
        moment = moment.astimezone()
    return moment.date()


def filter_tasks(
    tasks: list[Task],
    search: str = "",
    day: Optional[date] = None,
) -> list[Task]:
    """
    Filter tasks for the board view.

    Args:
        tasks: Fetched tasks
        search: Case-insensitive match on title, description or project
        day: Only tasks whose board day (see task_day) is this date; None
            shows every day

    Returns:
        Matching tasks, original order kept
    """
    needle = search.strip().lower()
    result = []
    for task in tasks:
        if needle and not any(
            needle in (text or "").lower()
            for text in (task.title, task.description, task.project)
        ):
            continue
        if day is not None and task_day(task) != day:
            continue
        result.append(task)
    return result


def group_by_status(tasks: list[Task]) -> list[Column]:
    """Split tasks into the board's columns, in workflow order."""
    columns = [Column(status=status, title=title, color=color) for status, title, color in COLUMNS]
    by_status = {column.status: column for column in columns}
    for task in tasks:
        column = by_status.get(task.status)
        if column is None:
            logger.warning(f"Task {task.id} has no column for status {task.status!r}")
            continue
        column.tasks.append(task)
    return columns


StatusUpdate = Callable[[str, TaskStatus], Union[None, Awaitable[object]]]


async def handle_drop(
    task_id: str,
    target: Optional[DropTarget],
    tasks: list[Task],
    on_update: StatusUpdate,
) -> bool:
    """
    Apply a drag-and-drop release.

    Calls on_update(task_id, new_status) only when the card was dropped on a
    column whose status differs from the task's current one.

    Returns:
        True if on_update was called
    """
    if target is None or target.kind != "column" or target.status is None:
        logger.debug(f"Task {task_id} not dropped on a column, ignoring")
        return False

    task = next((t for t in tasks if t.id == task_id), None)
    if task is None:
        logger.warning(f"Dropped unknown task {task_id}")
        return False

    if task.status == target.status:
        return False

    logger.info(f"Moving task {task_id}: {task.status.value} -> {target.status.value}")
    result = on_update(task_id, target.status)
    if result is not None:
        await result
    return True
