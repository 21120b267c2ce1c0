"""Task endpoints."""

import logging
from typing import Any, Optional

from .client import ApiClient
from .payloads import parse_one
from .models import Task, TaskForm

logger = logging.getLogger(__name__)


class TasksAPI:
    """CRUD for tasks under /api/tasks."""

    def __init__(self, client: ApiClient):
        """Initialize with API client."""
        self.client = client

    async def list_tasks(
        self,
        q: Optional[str] = None,
        status: Optional[str] = None,
        page: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Any:
        """
        Fetch tasks.

        Returns:
            The raw payload: usually a JSON array, sometimes {"tasks": [...]}
        """
        return await self.client.get(
            "/api/tasks", params={"q": q, "status": status, "page": page, "limit": limit}
        )

    async def create(self, form: TaskForm) -> Task:
        data = await self.client.post("/api/tasks", form.to_payload())
        return parse_one(Task, data)

    async def update(self, task_id: str, payload: dict[str, Any]) -> Task:
        """
        Update a task.

        Args:
            task_id: Task identifier
            payload: camelCase body (TaskForm.to_payload() or Task.to_payload())
        """
        data = await self.client.put(f"/api/tasks/{task_id}", payload)
        return parse_one(Task, data)

    async def delete(self, task_id: str, hard: bool = False) -> Any:
        """Soft-delete a task, or remove it permanently with hard=True."""
        path = f"/api/tasks/{task_id}/hard" if hard else f"/api/tasks/{task_id}"
        logger.info(f"Deleting task {task_id} ({'hard' if hard else 'soft'})")
        return await self.client.delete(path)

    async def restore(self, task_id: str) -> Task:
        data = await self.client.post(f"/api/tasks/{task_id}/restore")
        return parse_one(Task, data)
