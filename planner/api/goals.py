"""Monthly goal endpoints."""

import logging
from typing import Any, Optional

from .client import ApiClient
from .payloads import parse_one
from .models import GoalDetails, GoalForm, GoalUpdate, MonthlyGoal, ProgressReport

logger = logging.getLogger(__name__)


class MonthlyGoalsAPI:
    """Monthly goals under /api/monthly-goals."""

    def __init__(self, client: ApiClient):
        """Initialize with API client."""
        self.client = client

    async def create(self, form: GoalForm) -> MonthlyGoal:
        data = await self.client.post("/api/monthly-goals", form.to_payload())
        return parse_one(MonthlyGoal, data)

    async def list_goals(
        self,
        status: Optional[str] = None,
        month: Optional[int] = None,
        year: Optional[int] = None,
    ) -> Any:
        """
        Fetch goals.

        Returns:
            The raw payload, expected to be a JSON array
        """
        return await self.client.get(
            "/api/monthly-goals", params={"status": status, "month": month, "year": year}
        )

    async def details(self, goal_id: str) -> GoalDetails:
        """Goal plus its generated tasks and progress."""
        data = await self.client.get(f"/api/monthly-goals/{goal_id}")
        return parse_one(GoalDetails, data)

    async def update(self, goal_id: str, form: GoalUpdate) -> MonthlyGoal:
        data = await self.client.put(f"/api/monthly-goals/{goal_id}", form.to_payload())
        return parse_one(MonthlyGoal, data)

    async def delete(self, goal_id: str) -> Any:
        """Delete a goal. The server also removes the tasks it generated."""
        return await self.client.delete(f"/api/monthly-goals/{goal_id}")

    async def progress_report(
        self, month: Optional[int] = None, year: Optional[int] = None
    ) -> ProgressReport:
        data = await self.client.get(
            "/api/monthly-goals/progress/report",
            params={"month": month or None, "year": year or None},
        )
        return parse_one(ProgressReport, data or {})
