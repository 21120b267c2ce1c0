"""Task board controller (the dashboard page)."""

import logging
from datetime import date, datetime, time
from typing import Optional

from ..api.errors import ApiError
from ..api.models import Task, TaskForm, TaskStatus
from ..api.payloads import parse_list
from ..api.tasks import TasksAPI
from ..kanban import Column, DropTarget, filter_tasks, group_by_status, handle_drop
from .base import ListController

logger = logging.getLogger(__name__)

END_OF_DAY = time(23, 59, 59, 999000)


class TaskBoardController(ListController[Task]):
    """Owns the fetched task list behind the kanban board."""

    def __init__(self, api: TasksAPI):
        """Initialize with tasks API."""
        super().__init__()
        self.api = api
        self.search_term = ""
        self.selected_day: Optional[date] = date.today()

    async def load(self):
        """Fetch all tasks, replacing the current list."""
        generation = self._next_generation()
        self.is_loading = True
        try:
            payload = await self.api.list_tasks()
            if not self._is_current(generation):
                return
            self.items = parse_list(Task, payload, "tasks")
            logger.info(f"Loaded {len(self.items)} tasks")
        except ApiError as e:
            self._fail(e, "Could not load tasks. Please try again.")
        finally:
            if generation == self._generation:
                self.is_loading = False

    def visible_tasks(self) -> list[Task]:
        return filter_tasks(self.items, self.search_term, self.selected_day)

    def board(self) -> list[Column]:
        return group_by_status(self.visible_tasks())

    async def create(self, form: TaskForm) -> Optional[Task]:
        try:
            task = await self.api.create(form)
        except ApiError as e:
            self._fail(e, f"Could not create task: {e.message}")
            return None

        self._prepend(task)
        self.notify("success", "Task created")
        return task

    async def update(self, task_id: str, form: TaskForm) -> Optional[Task]:
        try:
            task = await self.api.update(task_id, form.to_payload())
        except ApiError as e:
            self._fail(e, f"Could not update task: {e.message}")
            return None

        self._replace(task)
        self.notify("success", "Task updated")
        return task

    async def update_status(self, task_id: str, status: TaskStatus) -> Optional[Task]:
        """Move a task to another column, resending the full task with the new status."""
        task = self.find(task_id)
        if task is None:
            logger.error(f"Task not found: {task_id}")
            return None

        payload = task.to_payload(status=TaskStatus(status).value)
        try:
            updated = await self.api.update(task_id, payload)
        except ApiError as e:
            self._fail(e, f"Could not update task status: {e.message}")
            return None

        self._replace(updated)
        return updated

    async def drop(self, task_id: str, target: Optional[DropTarget]) -> bool:
        """Handle a card released over target. True if a status update was sent."""
        return await handle_drop(task_id, target, self.items, self.update_status)

    async def move_to_date(self, task_id: str, day: date) -> Optional[Task]:
        """Reschedule a task to the end of the given day."""
        task = self.find(task_id)
        if task is None:
            logger.error(f"Task not found: {task_id}")
            return None

        due = datetime.combine(day, END_OF_DAY).astimezone()
        try:
            updated = await self.api.update(task_id, task.to_payload(dueDate=due.isoformat()))
        except ApiError as e:
            self._fail(e, "Could not move task to the selected date")
            return None

        self._replace(updated)
        return updated

    async def delete(self, task_id: str, hard: bool = False) -> bool:
        try:
            await self.api.delete(task_id, hard=hard)
        except ApiError as e:
            self._fail(e, "Could not delete task")
            return False

        self._remove(task_id)
        self.notify("success", "Task deleted permanently" if hard else "Task moved to trash")
        return True

    async def restore(self, task_id: str) -> Optional[Task]:
        """Bring a soft-deleted task back onto the board."""
        try:
            task = await self.api.restore(task_id)
        except ApiError as e:
            self._fail(e, "Could not restore task")
            return None

        if self.find(task.id) is None:
            self._prepend(task)
        else:
            self._replace(task)
        self.notify("success", "Task restored")
        return task
