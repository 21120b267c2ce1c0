"""Main FastAPI application."""

import logging
from contextlib import asynccontextmanager
from dataclasses import asdict
from datetime import date, datetime
from typing import Any, Optional

import httpx
from fastapi import Body, Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse, RedirectResponse

from .api.client import ApiClient
from .api.errors import ApiError, AuthenticationRequired, ValidationError
from .api.goals import MonthlyGoalsAPI
from .api.models import (
    Credentials,
    GoalForm,
    GoalStatus,
    GoalUpdate,
    Note,
    NoteForm,
    NoteUpdate,
    PasswordChange,
    ProfileForm,
    Registration,
    TaskForm,
    TaskStatus,
    User,
    validate_form,
)
from .api.notes import NoteFilters, NotesAPI
from .api.profile import ProfileAPI
from .api.tasks import TasksAPI
from .config import Settings, settings
from .controllers.base import ListController
from .controllers.goals import GoalsController
from .controllers.notes import DELETE_NOTE_PROMPT, NotesController
from .controllers.tasks import TaskBoardController
from .kanban import DropTarget, delete_prompt
from .session.auth import AuthSession
from .session.store import SessionStore

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def create_app(
    config: Settings = settings,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """
    Build the application.

    Args:
        config: Settings to run with
        transport: Optional httpx transport for the remote API (tests)
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        store = SessionStore(config.session_db_path)
        client = ApiClient(
            config.api_url,
            store,
            timeout=config.request_timeout,
            transport=transport,
        )
        session = AuthSession(client, store)

        def session_expired():
            logger.info(f"Session expired, redirecting to {config.login_path}")
            session.user = None

        client.on_auth_failure = session_expired

        await client.connect()
        await session.initialize()

        app.state.settings = config
        app.state.client = client
        app.state.session = session
        try:
            yield
        finally:
            await client.disconnect()

    app = FastAPI(
        title="Planner",
        description="Tasks, notes and monthly goals on top of the planner REST API",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.exception_handler(AuthenticationRequired)
    async def auth_required_handler(request: Request, exc: AuthenticationRequired):
        return RedirectResponse(request.app.state.settings.login_path, status_code=303)

    @app.exception_handler(ValidationError)
    async def validation_handler(request: Request, exc: ValidationError):
        return JSONResponse(status_code=422, content={"errors": exc.errors})

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        status = exc.status_code if exc.status_code and 400 <= exc.status_code < 500 else 502
        return JSONResponse(status_code=status, content={"message": exc.message})

    register_routes(app)
    return app


def get_session(request: Request) -> AuthSession:
    return request.app.state.session


def get_client(request: Request) -> ApiClient:
    return request.app.state.client


def require_user(session: AuthSession = Depends(get_session)) -> User:
    if not session.is_authenticated:
        raise AuthenticationRequired("Please log in")
    return session.user


def _notices(controller: ListController) -> list[dict]:
    return [{"level": n.level, "text": n.text} for n in controller.drain_notices()]


def _result(controller: ListController, value: Any) -> Any:
    """Return value, or raise the error the controller recorded when it's missing."""
    if value is None or value is False:
        raise controller.last_error or ApiError("Not found", status_code=404)
    return value


def _note_dict(note: Note) -> dict:
    data = note.model_dump(mode="json")
    data["detected_links"] = note.detected_links
    return data


def register_routes(app: FastAPI):
    """Attach all routes to app."""

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "message": "Planner",
            "version": "1.0.0",
            "endpoints": {
                "dashboard": "/dashboard",
                "notes": "/notes",
                "monthly_goals": "/monthly-goals",
                "profile": "/profile",
                "login": "/login",
                "status": "/status",
            },
        }

    @app.get("/status")
    async def status(request: Request, session: AuthSession = Depends(get_session)):
        """Server status endpoint."""
        return {
            "status": "running",
            "version": "1.0.0",
            "timestamp": datetime.utcnow().isoformat(),
            "api_url": request.app.state.settings.api_url,
            "authenticated": session.is_authenticated,
        }

    # Auth

    @app.get("/login")
    async def login_page(session: AuthSession = Depends(get_session)):
        """Where auth failures land."""
        return {
            "authenticated": session.is_authenticated,
            "message": "Please log in" if not session.is_authenticated else "Already logged in",
        }

    @app.post("/login")
    async def login(
        payload: dict = Body(...),
        session: AuthSession = Depends(get_session),
    ):
        form = validate_form(Credentials, payload)
        user = await session.login(form.email, form.password)
        return {"user": user.model_dump(mode="json")}

    @app.post("/register")
    async def register(
        payload: dict = Body(...),
        session: AuthSession = Depends(get_session),
    ):
        form = validate_form(Registration, payload)
        user = await session.register(form)
        return {"user": user.model_dump(mode="json")}

    @app.post("/logout")
    async def logout(session: AuthSession = Depends(get_session)):
        await session.logout()
        return {"status": "logged_out"}

    @app.get("/me")
    async def me(user: User = Depends(require_user)):
        return {"user": user.model_dump(mode="json")}

    # Profile

    @app.get("/profile")
    async def get_profile(
        user: User = Depends(require_user),
        client: ApiClient = Depends(get_client),
    ):
        profile = await ProfileAPI(client).get_profile()
        return {"user": profile.model_dump(mode="json")}

    @app.put("/profile")
    async def update_profile(
        payload: dict = Body(...),
        user: User = Depends(require_user),
        client: ApiClient = Depends(get_client),
        session: AuthSession = Depends(get_session),
    ):
        form = validate_form(ProfileForm, payload)
        profile = await ProfileAPI(client).update_profile(form)
        session.update_user(name=profile.name, avatar_url=profile.avatar_url)
        return {"user": profile.model_dump(mode="json"), "message": "Profile updated"}

    @app.put("/profile/password")
    async def change_password(
        payload: dict = Body(...),
        user: User = Depends(require_user),
        client: ApiClient = Depends(get_client),
    ):
        form = validate_form(PasswordChange, payload)
        await ProfileAPI(client).change_password(form)
        return {"message": "Password changed"}

    @app.delete("/profile")
    async def delete_account(
        payload: dict = Body(...),
        user: User = Depends(require_user),
        client: ApiClient = Depends(get_client),
        session: AuthSession = Depends(get_session),
    ):
        password = payload.get("password")
        if not password:
            raise ValidationError({"password": "Password is required"})
        await ProfileAPI(client).delete_account(password)
        await session.logout()
        return {"message": "Account deleted"}

    # Dashboard (kanban)

    @app.get("/dashboard")
    async def dashboard(
        q: str = "",
        day: Optional[str] = Query(None, description="YYYY-MM-DD, or 'all'"),
        user: User = Depends(require_user),
        client: ApiClient = Depends(get_client),
    ):
        controller = TaskBoardController(TasksAPI(client))
        controller.search_term = q
        if day == "all":
            controller.selected_day = None
        elif day:
            controller.selected_day = _parse_day(day)

        await controller.load()
        return {
            "day": controller.selected_day.isoformat() if controller.selected_day else None,
            "columns": [column.to_dict() for column in controller.board()],
            "total": len(controller.items),
            "notices": _notices(controller),
        }

    @app.post("/dashboard/tasks", status_code=201)
    async def create_task(
        payload: dict = Body(...),
        user: User = Depends(require_user),
        client: ApiClient = Depends(get_client),
    ):
        form = validate_form(TaskForm, payload)
        controller = TaskBoardController(TasksAPI(client))
        task = _result(controller, await controller.create(form))
        return {"task": task.model_dump(mode="json"), "notices": _notices(controller)}

    @app.put("/dashboard/tasks/{task_id}")
    async def update_task(
        task_id: str,
        payload: dict = Body(...),
        user: User = Depends(require_user),
        client: ApiClient = Depends(get_client),
    ):
        form = validate_form(TaskForm, payload)
        controller = TaskBoardController(TasksAPI(client))
        task = _result(controller, await controller.update(task_id, form))
        return {"task": task.model_dump(mode="json"), "notices": _notices(controller)}

    @app.post("/dashboard/tasks/{task_id}/drop")
    async def drop_task(
        task_id: str,
        payload: dict = Body(...),
        user: User = Depends(require_user),
        client: ApiClient = Depends(get_client),
    ):
        """A card was released over a drop target ({"kind": "column", "status": ...})."""
        status = payload.get("status")
        try:
            target = DropTarget(
                kind=payload.get("kind", "column"),
                status=TaskStatus(status) if status else None,
            )
        except ValueError as e:
            raise ValidationError({"status": "Invalid status"}) from e

        controller = TaskBoardController(TasksAPI(client))
        await controller.load()
        if controller.last_error:
            raise controller.last_error

        moved = await controller.drop(task_id, target)
        if moved and controller.last_error:
            raise controller.last_error

        task = controller.find(task_id)
        return {
            "moved": moved,
            "task": task.model_dump(mode="json") if task else None,
            "notices": _notices(controller),
        }

    @app.post("/dashboard/tasks/{task_id}/move")
    async def move_task(
        task_id: str,
        payload: dict = Body(...),
        user: User = Depends(require_user),
        client: ApiClient = Depends(get_client),
    ):
        day = _parse_day(payload.get("day", ""))
        controller = TaskBoardController(TasksAPI(client))
        await controller.load()
        task = _result(controller, await controller.move_to_date(task_id, day))
        return {"task": task.model_dump(mode="json"), "notices": _notices(controller)}

    @app.get("/dashboard/tasks/{task_id}/delete-prompt")
    async def task_delete_prompt(task_id: str, hard: bool = False):
        return asdict(delete_prompt(hard))

    @app.delete("/dashboard/tasks/{task_id}")
    async def delete_task(
        task_id: str,
        hard: bool = False,
        user: User = Depends(require_user),
        client: ApiClient = Depends(get_client),
    ):
        controller = TaskBoardController(TasksAPI(client))
        _result(controller, await controller.delete(task_id, hard=hard))
        return {"deleted": True, "hard": hard, "notices": _notices(controller)}

    @app.post("/dashboard/tasks/{task_id}/restore")
    async def restore_task(
        task_id: str,
        user: User = Depends(require_user),
        client: ApiClient = Depends(get_client),
    ):
        controller = TaskBoardController(TasksAPI(client))
        task = _result(controller, await controller.restore(task_id))
        return {"task": task.model_dump(mode="json"), "notices": _notices(controller)}

    # Notes

    @app.get("/notes")
    async def notes(
        category: Optional[str] = None,
        search: Optional[str] = None,
        tag: Optional[str] = None,
        pinned: Optional[bool] = None,
        archived: Optional[bool] = None,
        page: int = 1,
        limit: int = 20,
        sort_by: str = Query("updatedAt", pattern="^(createdAt|updatedAt|title)$"),
        sort_order: str = Query("desc", pattern="^(asc|desc)$"),
        user: User = Depends(require_user),
        client: ApiClient = Depends(get_client),
    ):
        filters = NoteFilters(
            category=category,
            search=search,
            tag=tag,
            is_pinned=pinned,
            is_archived=archived,
            page=page,
            limit=limit,
            sort_by=sort_by,
            sort_order=sort_order,
        )
        controller = NotesController(NotesAPI(client), filters)
        await controller.load()
        return {
            "sections": {
                name: [_note_dict(note) for note in section]
                for name, section in controller.sections().items()
            },
            "stats": controller.stats(),
            "categories": controller.categories,
            "tags": controller.tags,
            "page": controller.page,
            "total_pages": controller.total_pages,
            "notices": _notices(controller),
        }

    @app.post("/notes", status_code=201)
    async def create_note(
        payload: dict = Body(...),
        user: User = Depends(require_user),
        client: ApiClient = Depends(get_client),
    ):
        form = validate_form(NoteForm, payload)
        controller = NotesController(NotesAPI(client))
        note = _result(controller, await controller.create(form))
        return {"note": _note_dict(note), "notices": _notices(controller)}

    @app.get("/notes/{note_id}")
    async def note_detail(
        note_id: str,
        user: User = Depends(require_user),
        client: ApiClient = Depends(get_client),
    ):
        """One note, the link previews the server stored and the links found in its content."""
        controller = NotesController(NotesAPI(client))
        note, links = _result(controller, await controller.detail(note_id))
        return {
            "note": _note_dict(note),
            "links": [link.model_dump(mode="json") for link in links],
            "notices": _notices(controller),
        }

    @app.put("/notes/{note_id}")
    async def update_note(
        note_id: str,
        payload: dict = Body(...),
        user: User = Depends(require_user),
        client: ApiClient = Depends(get_client),
    ):
        form = validate_form(NoteUpdate, payload)
        controller = NotesController(NotesAPI(client))
        note = _result(controller, await controller.update(note_id, form))
        return {"note": _note_dict(note), "notices": _notices(controller)}

    @app.delete("/notes/{note_id}")
    async def delete_note(
        note_id: str,
        confirm: bool = False,
        user: User = Depends(require_user),
        client: ApiClient = Depends(get_client),
    ):
        """Delete a note. Without confirm=true nothing happens and the prompt is returned."""
        controller = NotesController(NotesAPI(client))
        deleted = await controller.delete(note_id, confirm=lambda prompt: confirm)
        if not deleted and confirm:
            raise controller.last_error or ApiError("Could not delete note")
        return {"deleted": deleted, "prompt": DELETE_NOTE_PROMPT, "notices": _notices(controller)}

    @app.post("/notes/{note_id}/pin")
    async def toggle_pin(
        note_id: str,
        user: User = Depends(require_user),
        client: ApiClient = Depends(get_client),
    ):
        controller = NotesController(NotesAPI(client))
        note = _result(controller, await controller.toggle_pin(note_id))
        return {"note": _note_dict(note), "notices": _notices(controller)}

    @app.post("/notes/{note_id}/archive")
    async def toggle_archive(
        note_id: str,
        user: User = Depends(require_user),
        client: ApiClient = Depends(get_client),
    ):
        controller = NotesController(NotesAPI(client))
        note = _result(controller, await controller.toggle_archive(note_id))
        return {"note": _note_dict(note), "notices": _notices(controller)}

    # Monthly goals

    @app.get("/monthly-goals")
    async def monthly_goals(
        status: Optional[str] = None,
        month: Optional[int] = Query(None, ge=1, le=12),
        year: Optional[int] = None,
        q: str = "",
        status_filter: str = "all",
        sort_by: str = Query("created", pattern="^(created|title|status|progress)$"),
        user: User = Depends(require_user),
        client: ApiClient = Depends(get_client),
    ):
        controller = GoalsController(MonthlyGoalsAPI(client))
        controller.search_term = q
        controller.status_filter = status_filter
        controller.sort_by = sort_by
        await controller.load(status=status, month=month, year=year)
        goals = controller.visible_goals()
        return {
            "goals": [goal.model_dump(mode="json") for goal in goals],
            "showing": len(goals),
            "stats": controller.stats(),
            "notices": _notices(controller),
        }

    @app.post("/monthly-goals", status_code=201)
    async def create_goal(
        payload: dict = Body(...),
        user: User = Depends(require_user),
        client: ApiClient = Depends(get_client),
    ):
        form = validate_form(GoalForm, payload)
        controller = GoalsController(MonthlyGoalsAPI(client))
        goal = _result(controller, await controller.create(form))
        return {"goal": goal.model_dump(mode="json"), "notices": _notices(controller)}

    @app.get("/monthly-goals/report")
    async def goals_report(
        month: Optional[int] = Query(None, ge=1, le=12),
        year: Optional[int] = None,
        user: User = Depends(require_user),
        client: ApiClient = Depends(get_client),
    ):
        controller = GoalsController(MonthlyGoalsAPI(client))
        report = _result(controller, await controller.progress_report(month, year))
        return {"report": report.model_dump(mode="json")}

    @app.get("/monthly-goals/{goal_id}")
    async def goal_details(
        goal_id: str,
        user: User = Depends(require_user),
        client: ApiClient = Depends(get_client),
    ):
        controller = GoalsController(MonthlyGoalsAPI(client))
        details = _result(controller, await controller.details(goal_id))
        return details.model_dump(mode="json")

    @app.put("/monthly-goals/{goal_id}")
    async def update_goal(
        goal_id: str,
        payload: dict = Body(...),
        user: User = Depends(require_user),
        client: ApiClient = Depends(get_client),
    ):
        form = validate_form(GoalUpdate, payload)
        controller = GoalsController(MonthlyGoalsAPI(client))
        goal = _result(controller, await controller.update(goal_id, form))
        return {"goal": goal.model_dump(mode="json"), "notices": _notices(controller)}

    @app.post("/monthly-goals/{goal_id}/status")
    async def change_goal_status(
        goal_id: str,
        payload: dict = Body(...),
        user: User = Depends(require_user),
        client: ApiClient = Depends(get_client),
    ):
        status = payload.get("status")
        if status not in {s.value for s in GoalStatus}:
            raise ValidationError({"status": "Invalid status"})
        controller = GoalsController(MonthlyGoalsAPI(client))
        goal = _result(controller, await controller.change_status(goal_id, GoalStatus(status)))
        return {"goal": goal.model_dump(mode="json"), "notices": _notices(controller)}

    @app.delete("/monthly-goals/{goal_id}")
    async def delete_goal(
        goal_id: str,
        user: User = Depends(require_user),
        client: ApiClient = Depends(get_client),
    ):
        controller = GoalsController(MonthlyGoalsAPI(client))
        _result(controller, await controller.delete(goal_id))
        return {"deleted": True, "notices": _notices(controller)}


def _parse_day(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError) as e:
        raise ValidationError({"day": "Expected a date like 2024-01-31"}) from e


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        app,
        host=settings.server_host,
        port=settings.server_port,
        log_level=settings.log_level.lower(),
    )
