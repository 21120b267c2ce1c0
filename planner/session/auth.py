"""Auth session: the signed-in user, backed by persisted tokens."""

import logging
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from ..api.auth import AuthAPI
from ..api.client import ApiClient
from ..api.errors import ApiError
from ..api.models import AuthResult, Registration, User
from ..api.profile import ProfileAPI
from .store import SessionStore

logger = logging.getLogger(__name__)


class AuthSession:
    """
    Holds the current user for the lifetime of the application.

    Constructed once at startup and handed to whatever needs it; nothing
    reads session state from module globals.
    """

    def __init__(self, client: ApiClient, store: SessionStore):
        """
        Initialize session.

        Args:
            client: API client (shares the same store for its tokens)
            store: Persisted tokens and cached user
        """
        self.client = client
        self.store = store
        self.auth_api = AuthAPI(client)
        self.profile_api = ProfileAPI(client)
        self.user: Optional[User] = None
        self.is_loading = True

    @property
    def is_authenticated(self) -> bool:
        return self.user is not None

    async def initialize(self) -> Optional[User]:
        """
        Restore the session from persisted tokens.

        With a stored access token the profile is fetched fresh. If that fails
        the cached profile is used; with no cached profile either, the stored
        credentials are considered invalid and cleared.
        """
        try:
            if not self.store.access_token:
                logger.info("No stored token, user not authenticated")
                return None

            try:
                self.user = await self.profile_api.get_profile()
                self.store.save_user(self._user_dict(self.user))
                logger.info(f"Session restored for {self.user.email}")
            except ApiError as e:
                logger.warning(f"Failed to load user profile: {e}")
                self.user = self._load_cached_user()
                if self.user:
                    logger.info("Falling back to cached user data")
                else:
                    logger.info("No cached user data, clearing stored credentials")
                    self.store.clear()

            return self.user
        finally:
            self.is_loading = False

    async def login(self, email: str, password: str) -> User:
        """
        Log in and persist the returned token pair and user.

        Raises:
            ApiError: carrying the server's message, or "Login failed"
        """
        try:
            result = await self.auth_api.login(email, password)
        except ApiError as e:
            raise ApiError(_message(e, "Login failed"), status_code=e.status_code) from e

        return self._start(result)

    async def register(self, form: Registration) -> User:
        """
        Create an account and sign in with it.

        Raises:
            ApiError: carrying the server's message, or "Registration failed"
        """
        try:
            result = await self.auth_api.register(form)
        except ApiError as e:
            raise ApiError(_message(e, "Registration failed"), status_code=e.status_code) from e

        return self._start(result)

    async def logout(self):
        """Invalidate the refresh token server-side if possible, then forget everything locally."""
        try:
            refresh_token = self.store.refresh_token
            if refresh_token:
                await self.auth_api.logout(refresh_token)
        except ApiError as e:
            logger.warning(f"Logout API failed, clearing locally anyway: {e}")
        finally:
            self.store.clear()
            self.user = None
            logger.info("Logged out")

    def update_user(self, **changes: Any) -> Optional[User]:
        """Merge profile changes into the cached user and persist them."""
        if self.user is None:
            return None

        for field in ("id", "email"):
            if changes.pop(field, None) is not None:
                logger.warning(f"Ignoring change to immutable user field: {field}")

        self.user = self.user.model_copy(update=changes)
        self.store.save_user(self._user_dict(self.user))
        return self.user

    def _start(self, result: AuthResult) -> User:
        self.store.save_tokens(result.access_token, result.refresh_token)
        self.store.save_user(self._user_dict(result.user))
        self.user = result.user
        logger.info(f"Signed in as {self.user.email}")
        return self.user

    def _load_cached_user(self) -> Optional[User]:
        cached = self.store.cached_user()
        if not cached:
            return None
        try:
            return User.model_validate(cached)
        except PydanticValidationError:
            logger.warning("Cached user data is malformed, ignoring")
            return None

    @staticmethod
    def _user_dict(user: User) -> dict:
        return user.model_dump(mode="json", by_alias=True)


def _message(error: ApiError, fallback: str) -> str:
    # Network errors carry no server message worth showing as-is
    if error.status_code is None:
        return fallback
    return error.message or fallback


async def demo_session():
    """Demo: restore the stored session and print who is signed in."""
    import os
    from dotenv import load_dotenv

    load_dotenv()

    api_url = os.getenv("API_URL", "https://to-do-list-vsb8.onrender.com")
    store = SessionStore(os.getenv("SESSION_DB_PATH", "data/session.db"))

    async with ApiClient(api_url, store) as client:
        session = AuthSession(client, store)
        user = await session.initialize()

        if user is None:
            print("Not signed in")
            return

        print(f"Signed in as {user.name} <{user.email}>")


if __name__ == "__main__":
    import asyncio

    logging.basicConfig(level=logging.INFO)
    asyncio.run(demo_session())
