"""Monthly goals page controller."""

import logging
from datetime import datetime, timezone
from typing import Optional

from ..api.errors import ApiError
from ..api.goals import MonthlyGoalsAPI
from ..api.models import (
    GoalDetails,
    GoalForm,
    GoalStatus,
    GoalUpdate,
    MonthlyGoal,
    ProgressReport,
)
from ..api.payloads import parse_list
from .base import ListController

logger = logging.getLogger(__name__)

SORT_KEYS = ("created", "title", "status", "progress")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


class GoalsController(ListController[MonthlyGoal]):
    """Owns the fetched goal list; creates, edits and deletes are merged locally."""

    def __init__(self, api: MonthlyGoalsAPI):
        """Initialize with monthly goals API."""
        super().__init__()
        self.api = api
        self.status: Optional[str] = None
        self.month: Optional[int] = None
        self.year: Optional[int] = None

        # View-side filtering, no request involved
        self.search_term = ""
        self.status_filter = "all"
        self.sort_by = "created"

    async def load(
        self,
        status: Optional[str] = None,
        month: Optional[int] = None,
        year: Optional[int] = None,
    ):
        self.status, self.month, self.year = status, month, year
        generation = self._next_generation()
        self.is_loading = True
        try:
            payload = await self.api.list_goals(status=status, month=month, year=year)
            if not self._is_current(generation):
                return
            self.items = parse_list(MonthlyGoal, payload, "goals")
            logger.info(f"Loaded {len(self.items)} monthly goals")
        except ApiError as e:
            self._fail(e, "Could not load goals")
        finally:
            if generation == self._generation:
                self.is_loading = False

    async def create(self, form: GoalForm) -> Optional[MonthlyGoal]:
        try:
            goal = await self.api.create(form)
        except ApiError as e:
            self._fail(e, "Could not create goal")
            return None

        self._prepend(goal)
        self.notify("success", "Goal created")
        return goal

    async def update(self, goal_id: str, form: GoalUpdate) -> Optional[MonthlyGoal]:
        try:
            goal = await self.api.update(goal_id, form)
        except ApiError as e:
            self._fail(e, "Could not update goal")
            return None

        self._replace(goal)
        self.notify("success", "Goal updated")
        return goal

    async def change_status(self, goal_id: str, status: GoalStatus) -> Optional[MonthlyGoal]:
        try:
            goal = await self.api.update(goal_id, GoalUpdate(status=GoalStatus(status)))
        except ApiError as e:
            self._fail(e, "Could not update goal status")
            return None

        self._replace(goal)
        self.notify("success", "Goal status updated")
        return goal

    async def delete(self, goal_id: str) -> bool:
        """Delete a goal; its generated tasks go with it on the server."""
        try:
            await self.api.delete(goal_id)
        except ApiError as e:
            self._fail(e, "Could not delete goal")
            return False

        self._remove(goal_id)
        self.notify("success", "Goal deleted")
        return True

    async def details(self, goal_id: str) -> Optional[GoalDetails]:
        try:
            return await self.api.details(goal_id)
        except ApiError as e:
            self._fail(e, "Could not load goal details")
            return None

    async def progress_report(
        self, month: Optional[int] = None, year: Optional[int] = None
    ) -> Optional[ProgressReport]:
        try:
            return await self.api.progress_report(month, year)
        except ApiError as e:
            self._fail(e, "Could not load progress report")
            return None

    def visible_goals(self) -> list[MonthlyGoal]:
        """
        Goals after search, status filter and sort.

        Sorts:
            created: newest first
            title / status: alphabetical
            progress: highest completion rate first
        """
        needle = self.search_term.strip().lower()
        goals = [
            goal
            for goal in self.items
            if (not needle or needle in goal.title.lower() or needle in goal.description.lower())
            and (self.status_filter == "all" or goal.status.value == self.status_filter)
        ]

        if self.sort_by == "title":
            goals.sort(key=lambda g: g.title.lower())
        elif self.sort_by == "status":
            goals.sort(key=lambda g: g.status.value)
        elif self.sort_by == "progress":
            goals.sort(key=lambda g: g.stats.completion_rate if g.stats else 0, reverse=True)
        else:
            goals.sort(key=lambda g: _aware(g.created_at), reverse=True)
        return goals

    def stats(self) -> dict[str, int]:
        counts = {"total": len(self.items)}
        for status in GoalStatus:
            counts[status.value] = sum(1 for g in self.items if g.status == status)
        return counts


def _aware(moment: Optional[datetime]) -> datetime:
    if moment is None:
        return _EPOCH
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment
