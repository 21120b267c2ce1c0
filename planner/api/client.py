"""HTTP client for the remote planner REST API."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Union

import httpx

from ..session.store import SessionStore
from .errors import ApiError, AuthenticationRequired, server_message
from .models import TokenPair

logger = logging.getLogger(__name__)

AUTH_PREFIX = "/api/auth/"
REFRESH_PATH = "/api/auth/refresh"

AuthFailureHandler = Callable[[], Union[None, Awaitable[None]]]


class ApiClient:
    """Async HTTP client that attaches bearer tokens and refreshes them once on 401."""

    def __init__(
        self,
        base_url: str,
        store: SessionStore,
        timeout: float = 15.0,
        on_auth_failure: Optional[AuthFailureHandler] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize API client.

        Args:
            base_url: Remote API root (e.g., https://to-do-list-vsb8.onrender.com)
            store: Where the access/refresh tokens are persisted
            timeout: Per-request timeout in seconds
            on_auth_failure: Called after credentials are cleared because the
                session can't be recovered (the "redirect to login" hook)
            transport: Optional httpx transport (tests pass a MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self.store = store
        self.timeout = timeout
        self.on_auth_failure = on_auth_failure
        self._transport = transport
        self._refresh_lock = asyncio.Lock()
        self.http: Optional[httpx.AsyncClient] = None

    async def connect(self):
        """Open the underlying HTTP connection pool."""
        if self.http is not None:
            return
        self.http = httpx.AsyncClient(
            base_url=self.base_url,
            headers={"Content-Type": "application/json"},
            timeout=self.timeout,
            transport=self._transport,
        )
        logger.info(f"API client ready for {self.base_url}")

    async def disconnect(self):
        """Close the HTTP connection pool."""
        if self.http:
            await self.http.aclose()
            self.http = None
            logger.info("API client closed")

    async def __aenter__(self) -> "ApiClient":
        await self.connect()
        return self

    async def __aexit__(self, *exc_info):
        await self.disconnect()

    async def request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Any = None,
    ) -> Any:
        """
        Send a request and return the parsed JSON body.

        On a 401 the stored refresh token is exchanged for a new pair and the
        request is replayed exactly once. If that isn't possible the stored
        credentials are cleared, the auth failure hook runs and
        AuthenticationRequired is raised. A 401 from /api/auth/* (wrong
        password, revoked refresh token) is an ordinary ApiError.

        Returns:
            Decoded JSON, or None for an empty body
        """
        if self.http is None:
            await self.connect()

        params = _clean_params(params)
        sent_token = self.store.access_token
        response = await self._send(method, path, params, json, sent_token)

        # Deliberate exception: auth endpoints answer 401 for bad credentials
        if response.status_code == 401 and not path.startswith(AUTH_PREFIX):
            access_token = await self._refresh_tokens(sent_token)
            logger.debug(f"Replaying {method} {path} with refreshed token")
            response = await self._send(method, path, params, json, access_token)

            if response.status_code == 401:
                logger.warning(f"{method} {path} rejected again after token refresh")
                await self._end_session()
                raise AuthenticationRequired()

        return self._handle_response(method, path, response)

    async def get(self, path: str, params: Optional[dict] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def delete(self, path: str, json: Any = None) -> Any:
        return await self.request("DELETE", path, json=json)

    async def _send(
        self,
        method: str,
        path: str,
        params: Optional[dict],
        json: Any,
        access_token: Optional[str],
    ) -> httpx.Response:
        headers = {}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"

        logger.debug(f"{method} {path} params={params}")
        try:
            return await self.http.request(
                method, path, params=params, json=json, headers=headers
            )
        except httpx.HTTPError as e:
            logger.error(f"{method} {path} failed: {e}")
            raise ApiError(f"Network error: {e}") from e

    async def _refresh_tokens(self, rejected_token: Optional[str]) -> str:
        """
        Exchange the stored refresh token for a new pair and persist it.

        Refreshes are serialized. A request that was rejected with a token
        another request has since replaced reuses the newer token instead of
        spending the (already rotated) refresh token again.

        Args:
            rejected_token: Access token the failed request was sent with
        """
        async with self._refresh_lock:
            current_token = self.store.access_token
            if current_token and current_token != rejected_token:
                logger.debug("Token already refreshed by a concurrent request")
                return current_token

            refresh_token = self.store.refresh_token
            if not refresh_token:
                logger.info("Got 401 with no refresh token stored")
                await self._end_session()
                raise AuthenticationRequired()

            logger.info("Access token rejected, refreshing")
            try:
                # Bypasses request() so a failing refresh can't trigger another refresh
                response = await self.http.post(REFRESH_PATH, json={"refreshToken": refresh_token})
                response.raise_for_status()
                tokens = TokenPair.model_validate(response.json())
            except (httpx.HTTPError, ValueError) as e:
                logger.warning(f"Token refresh failed: {e}")
                await self._end_session()
                raise AuthenticationRequired() from e

            self.store.save_tokens(tokens.access_token, tokens.refresh_token)
            logger.info("✓ Token refreshed")
            return tokens.access_token

    async def _end_session(self):
        self.store.clear()
        if self.on_auth_failure is not None:
            result = self.on_auth_failure()
            if result is not None:
                await result

    def _handle_response(self, method: str, path: str, response: httpx.Response) -> Any:
        payload = _decode(response)

        if response.is_success:
            return payload

        message = server_message(payload, f"Request failed with status {response.status_code}")
        logger.error(f"{method} {path} -> {response.status_code}: {message}")
        raise ApiError(message, status_code=response.status_code, payload=payload)


def _decode(response: httpx.Response) -> Any:
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return response.text


def _clean_params(params: Optional[dict]) -> Optional[dict]:
    """Drop unset filters and render booleans the way the API expects."""
    if not params:
        return None
    cleaned = {}
    for key, value in params.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        cleaned[key] = value
    return cleaned or None


async def test_connection():
    """Manual check: log in with credentials from .env and list tasks."""
    import os
    from dotenv import load_dotenv

    from .auth import AuthAPI

    load_dotenv()

    api_url = os.getenv("API_URL", "https://to-do-list-vsb8.onrender.com")
    email = os.getenv("PLANNER_EMAIL")
    password = os.getenv("PLANNER_PASSWORD")

    if not email or not password:
        print("Error: PLANNER_EMAIL and PLANNER_PASSWORD must be set in .env file")
        return

    store = SessionStore("data/demo-session.db")
    client = ApiClient(api_url, store)

    try:
        await client.connect()

        result = await AuthAPI(client).login(email, password)
        store.save_tokens(result.access_token, result.refresh_token)
        print(f"\nLogged in as {result.user.name} <{result.user.email}>")

        tasks = await client.get("/api/tasks")
        print(f"Fetched task payload of type {type(tasks).__name__}")

    finally:
        await client.disconnect()


if __name__ == "__main__":
    import asyncio

    logging.basicConfig(level=logging.INFO)
    asyncio.run(test_connection())
