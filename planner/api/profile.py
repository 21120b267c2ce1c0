"""Profile endpoints."""

import logging
from typing import Any

from .client import ApiClient
from .payloads import parse_one
from .models import PasswordChange, ProfileForm, User

logger = logging.getLogger(__name__)


class ProfileAPI:
    """Current user's profile under /api/profile."""

    def __init__(self, client: ApiClient):
        """Initialize with API client."""
        self.client = client

    async def get_profile(self) -> User:
        """
        Fetch the signed-in user's profile.

        The API wraps the record as {"user": {...}}; a bare record is also
        accepted.
        """
        data = await self.client.get("/api/profile")
        return parse_one(User, _unwrap_user(data))

    async def update_profile(self, form: ProfileForm) -> User:
        data = await self.client.put("/api/profile", form.to_payload())
        return parse_one(User, _unwrap_user(data))

    async def change_password(self, form: PasswordChange) -> Any:
        return await self.client.put("/api/profile/password", form.to_payload())

    async def delete_account(self, password: str) -> Any:
        logger.warning("Deleting account")
        return await self.client.delete("/api/profile", {"password": password})


def _unwrap_user(data: Any) -> Any:
    if isinstance(data, dict) and isinstance(data.get("user"), dict):
        return data["user"]
    return data
