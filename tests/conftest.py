"""Shared fixtures: a scripted fake of the remote REST API and a client wired to it."""

import inspect
import json

import httpx
import pytest

from planner.api.client import ApiClient
from planner.session.store import SessionStore

API_URL = "http://api.test"


class FakeRemote:
    """
    Scripted stand-in for the remote REST API.

    Routes map (method, path) to a list of responses. Each response is a
    (status, body) tuple or a callable taking the request; responses are
    consumed in order and the last one repeats.
    """

    def __init__(self):
        self.routes = {}
        self.calls: list[httpx.Request] = []

    def on(self, method: str, path: str, *responses):
        self.routes[(method, path)] = list(responses)

    async def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        responses = self.routes.get((request.method, request.url.path))
        if not responses:
            return httpx.Response(404, json={"message": f"No route for {request.method} {request.url.path}"})

        response = responses.pop(0) if len(responses) > 1 else responses[0]
        if callable(response):
            response = response(request)
            if inspect.isawaitable(response):
                response = await response
            if isinstance(response, httpx.Response):
                return response

        status, body = response
        if body is None:
            return httpx.Response(status)
        return httpx.Response(status, json=body)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def requests_to(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.calls if r.method == method and r.url.path == path]

    def paths(self) -> list[tuple[str, str]]:
        return [(r.method, r.url.path) for r in self.calls]


def body(request: httpx.Request):
    return json.loads(request.content) if request.content else None


def task_json(task_id: str, status: str = "To do", **fields) -> dict:
    data = {
        "_id": task_id,
        "title": f"Task {task_id}",
        "description": "",
        "status": status,
        "priority": "medium",
        "project": "",
        "tags": [],
        "dueDate": "",
        "reminderAt": "",
        "createdAt": "2024-03-05T09:00:00",
        "updatedAt": "2024-03-05T09:00:00",
    }
    data.update(fields)
    return data


def note_json(note_id: str, **fields) -> dict:
    data = {
        "_id": note_id,
        "title": f"Note {note_id}",
        "content": "",
        "tags": [],
        "category": "",
        "color": "#ffffff",
        "isPinned": False,
        "isArchived": False,
        "createdAt": "2024-03-05T09:00:00Z",
        "updatedAt": "2024-03-05T09:00:00Z",
    }
    data.update(fields)
    return data


def goal_json(goal_id: str, **fields) -> dict:
    data = {
        "_id": goal_id,
        "title": f"Goal {goal_id}",
        "description": "",
        "dailyTime": "06:00",
        "timezone": "Asia/Ho_Chi_Minh",
        "repeatConfig": {"weekdays": [1, 2, 3, 4, 5], "includeWeekends": False},
        "status": "active",
        "createdAt": "2024-03-01T00:00:00Z",
        "updatedAt": "2024-03-01T00:00:00Z",
    }
    data.update(fields)
    return data


USER = {"_id": "u1", "name": "Lan", "email": "lan@example.com", "avatarUrl": None}


@pytest.fixture
def remote():
    return FakeRemote()


@pytest.fixture
def store(tmp_path):
    return SessionStore(str(tmp_path / "session.db"))


@pytest.fixture
def redirects():
    """Records every time the client gives up on the session."""
    return []


@pytest.fixture
async def client(remote, store, redirects):
    api_client = ApiClient(
        API_URL,
        store,
        on_auth_failure=lambda: redirects.append("/login"),
        transport=remote.transport(),
    )
    await api_client.connect()
    yield api_client
    await api_client.disconnect()
