"""Authentication endpoints."""

import logging
from typing import Any

from .client import ApiClient
from .payloads import parse_one
from .models import AuthResult, Registration

logger = logging.getLogger(__name__)


class AuthAPI:
    """Login, registration and logout under /api/auth. Token rotation lives in ApiClient."""

    def __init__(self, client: ApiClient):
        """Initialize with API client."""
        self.client = client

    async def register(self, form: Registration) -> AuthResult:
        data = await self.client.post("/api/auth/register", form.to_payload())
        return parse_one(AuthResult, data)

    async def login(self, email: str, password: str) -> AuthResult:
        data = await self.client.post(
            "/api/auth/login", {"email": email, "password": password}
        )
        return parse_one(AuthResult, data)

    async def logout(self, refresh_token: str) -> Any:
        """Invalidate the refresh token server-side."""
        return await self.client.post("/api/auth/logout", {"refreshToken": refresh_token})
