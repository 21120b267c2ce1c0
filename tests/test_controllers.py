"""
Tests for the page controllers: list state, merges after mutations and
stale-response handling.
"""
import asyncio
from datetime import date

import pytest

from planner.api.errors import AuthenticationRequired
from planner.api.goals import MonthlyGoalsAPI
from planner.api.models import GoalForm, GoalStatus, NoteForm, TaskForm, TaskStatus
from planner.api.notes import NotesAPI
from planner.api.tasks import TasksAPI
from planner.controllers.goals import GoalsController
from planner.controllers.notes import DELETE_NOTE_PROMPT, NotesController
from planner.controllers.tasks import TaskBoardController
from planner.kanban import DropTarget

from conftest import body, goal_json, note_json, task_json


@pytest.fixture
def tasks(client):
    return TaskBoardController(TasksAPI(client))


@pytest.fixture
def notes(client):
    return NotesController(NotesAPI(client))


@pytest.fixture
def goals(client):
    return GoalsController(MonthlyGoalsAPI(client))


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Task board
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


async def test_tasks_load_array(tasks, remote):
    remote.on("GET", "/api/tasks", (200, [task_json("t1"), task_json("t2", "Done")]))

    await tasks.load()

    assert [t.id for t in tasks.items] == ["t1", "t2"]
    assert tasks.is_loading is False


async def test_tasks_load_non_array_becomes_empty(tasks, remote):
    remote.on("GET", "/api/tasks", (200, {"unexpected": True}))

    await tasks.load()

    assert tasks.items == []
    assert tasks.last_error is None


async def test_tasks_load_accepts_wrapped_list_and_skips_bad_items(tasks, remote):
    remote.on("GET", "/api/tasks", (200, {"tasks": [task_json("t1"), {"title": "no id"}]}))

    await tasks.load()

    assert [t.id for t in tasks.items] == ["t1"]


async def test_tasks_load_failure_keeps_list_and_notifies(tasks, remote):
    remote.on("GET", "/api/tasks", (200, [task_json("t1")]), (500, {"message": "down"}))
    await tasks.load()

    await tasks.load()

    assert [t.id for t in tasks.items] == ["t1"]
    assert tasks.last_error.status_code == 500
    notices = tasks.drain_notices()
    assert notices[-1].level == "error"
    assert notices[-1].text == "Could not load tasks. Please try again."
    assert tasks.drain_notices() == []


async def test_tasks_load_lost_session_propagates(tasks, remote, store):
    remote.on("GET", "/api/tasks", (401, {}))

    with pytest.raises(AuthenticationRequired):
        await tasks.load()


async def test_tasks_stale_load_is_dropped(tasks, remote):
    release = asyncio.Event()
    first_sent = asyncio.Event()

    async def slow(request):
        first_sent.set()
        await release.wait()
        return (200, [task_json("old")])

    remote.on("GET", "/api/tasks", slow, (200, [task_json("new")]))

    first = asyncio.create_task(tasks.load())
    await first_sent.wait()
    await tasks.load()
    release.set()
    await first

    assert [t.id for t in tasks.items] == ["new"]
    assert tasks.is_loading is False


async def test_create_task_prepends(tasks, remote):
    remote.on("GET", "/api/tasks", (200, [task_json("t1")]))
    remote.on("POST", "/api/tasks", (201, task_json("t2", title="Fresh")))
    await tasks.load()

    created = await tasks.create(TaskForm(title="Fresh"))

    assert created.id == "t2"
    assert [t.id for t in tasks.items] == ["t2", "t1"]
    assert tasks.drain_notices()[-1].text == "Task created"


async def test_create_task_failure_leaves_list(tasks, remote):
    remote.on("POST", "/api/tasks", (400, {"message": "Title is required"}))

    assert await tasks.create(TaskForm(title="x")) is None

    assert tasks.items == []
    assert tasks.drain_notices()[-1].text == "Could not create task: Title is required"


async def test_update_task_replaces_in_place(tasks, remote):
    remote.on("GET", "/api/tasks", (200, [task_json("t1"), task_json("t2")]))
    remote.on("PUT", "/api/tasks/t2", (200, task_json("t2", title="Renamed")))
    await tasks.load()

    await tasks.update("t2", TaskForm(title="Renamed"))

    assert [t.title for t in tasks.items] == ["Task t1", "Renamed"]


async def test_drop_sends_full_task_with_new_status(tasks, remote):
    remote.on("GET", "/api/tasks", (200, [task_json("t1", tags=["home"], priority="high")]))
    remote.on("PUT", "/api/tasks/t1", (200, task_json("t1", "In progress", tags=["home"], priority="high")))
    await tasks.load()

    moved = await tasks.drop("t1", DropTarget.column("In progress"))

    assert moved is True
    sent = body(remote.requests_to("PUT", "/api/tasks/t1")[0])
    assert sent["status"] == "In progress"
    assert sent["title"] == "Task t1"
    assert sent["priority"] == "high"
    assert sent["tags"] == ["home"]
    assert tasks.find("t1").status == TaskStatus.IN_PROGRESS


async def test_drop_on_same_column_sends_nothing(tasks, remote):
    remote.on("GET", "/api/tasks", (200, [task_json("t1")]))
    await tasks.load()

    assert await tasks.drop("t1", DropTarget.column("To do")) is False
    assert remote.requests_to("PUT", "/api/tasks/t1") == []


async def test_move_to_date_sets_end_of_day(tasks, remote):
    remote.on("GET", "/api/tasks", (200, [task_json("t1")]))
    remote.on("PUT", "/api/tasks/t1", (200, task_json("t1", dueDate="2024-03-09T23:59:59.999000")))
    await tasks.load()

    await tasks.move_to_date("t1", date(2024, 3, 9))

    sent = body(remote.requests_to("PUT", "/api/tasks/t1")[0])
    assert sent["dueDate"].startswith("2024-03-09T23:59:59.999")
    assert tasks.find("t1").due_date.date() == date(2024, 3, 9)


async def test_soft_and_hard_delete_hit_different_endpoints(tasks, remote):
    remote.on("GET", "/api/tasks", (200, [task_json("t1"), task_json("t2")]))
    remote.on("DELETE", "/api/tasks/t1", (200, {"message": "moved to trash"}))
    remote.on("DELETE", "/api/tasks/t2/hard", (200, {"message": "deleted"}))
    await tasks.load()

    assert await tasks.delete("t1") is True
    assert await tasks.delete("t2", hard=True) is True

    assert ("DELETE", "/api/tasks/t1") in remote.paths()
    assert ("DELETE", "/api/tasks/t2/hard") in remote.paths()
    assert tasks.items == []
    texts = [n.text for n in tasks.drain_notices()]
    assert texts == ["Task moved to trash", "Task deleted permanently"]


async def test_delete_failure_keeps_task(tasks, remote):
    remote.on("GET", "/api/tasks", (200, [task_json("t1")]))
    remote.on("DELETE", "/api/tasks/t1", (404, {"message": "Task not found"}))
    await tasks.load()

    assert await tasks.delete("t1") is False
    assert [t.id for t in tasks.items] == ["t1"]


async def test_restore_puts_task_back(tasks, remote):
    remote.on("POST", "/api/tasks/t1/restore", (200, task_json("t1")))

    restored = await tasks.restore("t1")

    assert restored.id == "t1"
    assert [t.id for t in tasks.items] == ["t1"]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Notes
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


def notes_page(*notes, total=None, page=1, total_pages=1):
    return {
        "notes": list(notes),
        "total": total if total is not None else len(notes),
        "page": page,
        "limit": 20,
        "totalPages": total_pages,
    }


def stub_facets(remote, categories=(), tags=()):
    remote.on("GET", "/api/notes/categories/list", (200, list(categories)))
    remote.on("GET", "/api/notes/tags/list", (200, list(tags)))


async def test_notes_load_page_and_facets(notes, remote):
    remote.on("GET", "/api/notes", (200, notes_page(note_json("n1"), total=41, page=2, total_pages=3)))
    stub_facets(remote, ["work"], ["ideas", "home"])

    await notes.load()

    assert [n.id for n in notes.items] == ["n1"]
    assert (notes.total, notes.page, notes.total_pages) == (41, 2, 3)
    assert notes.categories == ["work"]
    assert notes.tags == ["ideas", "home"]


async def test_notes_filters_sent_as_camel_case(notes, remote):
    remote.on("GET", "/api/notes", (200, notes_page()))
    stub_facets(remote)

    await notes.set_filters(search="milk", is_pinned=True)

    params = remote.requests_to("GET", "/api/notes")[0].url.params
    assert params["search"] == "milk"
    assert params["isPinned"] == "true"
    assert params["sortBy"] == "updatedAt"
    assert params["page"] == "1"
    assert "category" not in params


async def test_notes_filter_change_resets_page(notes, remote):
    remote.on("GET", "/api/notes", (200, notes_page()))
    stub_facets(remote)
    await notes.set_filters(page=3)

    await notes.set_filters(tag="ideas")

    assert notes.filters.page == 1
    assert notes.filters.tag == "ideas"


async def test_notes_unexpected_payload_is_empty(notes, remote):
    remote.on("GET", "/api/notes", (200, "oops"))
    stub_facets(remote)

    await notes.load()

    assert notes.items == []
    assert notes.last_error is None


async def test_notes_facet_failure_is_quiet(notes, remote):
    remote.on("GET", "/api/notes", (200, notes_page(note_json("n1"))))
    remote.on("GET", "/api/notes/categories/list", (500, {}))
    remote.on("GET", "/api/notes/tags/list", (200, {"tags": ["x"]}))

    await notes.load()

    assert notes.categories == []
    assert notes.tags == ["x"]
    assert notes.drain_notices() == []


async def test_toggle_pin_leaves_archive_untouched(notes, remote):
    remote.on("GET", "/api/notes", (200, notes_page(note_json("n1", isArchived=True))))
    stub_facets(remote)
    remote.on("POST", "/api/notes/n1/pin", (200, note_json("n1", isPinned=True, isArchived=True)))
    await notes.load()

    await notes.toggle_pin("n1")

    note = notes.find("n1")
    assert note.is_pinned is True
    assert note.is_archived is True
    assert ("POST", "/api/notes/n1/archive") not in remote.paths()


async def test_toggle_archive_uses_its_own_endpoint(notes, remote):
    remote.on("GET", "/api/notes", (200, notes_page(note_json("n1", isPinned=True))))
    stub_facets(remote)
    remote.on("POST", "/api/notes/n1/archive", (200, note_json("n1", isPinned=True, isArchived=True)))
    await notes.load()

    await notes.toggle_archive("n1")

    assert notes.find("n1").is_pinned is True
    assert notes.sections()["archived"][0].id == "n1"
    assert ("POST", "/api/notes/n1/pin") not in remote.paths()


async def test_create_note_reloads(notes, remote):
    remote.on("POST", "/api/notes", (201, note_json("n2")))
    remote.on("GET", "/api/notes", (200, notes_page(note_json("n2"), note_json("n1"))))
    stub_facets(remote, ["work"])

    created = await notes.create(NoteForm(title="New"))

    assert created.id == "n2"
    assert [n.id for n in notes.items] == ["n2", "n1"]
    assert notes.categories == ["work"]


async def test_delete_note_requires_confirmation(notes, remote):
    prompts = []

    def decline(prompt):
        prompts.append(prompt)
        return False

    assert await notes.delete("n1", decline) is False

    assert prompts == [DELETE_NOTE_PROMPT]
    assert remote.calls == []


async def test_delete_note_confirmed_reloads(notes, remote):
    remote.on("DELETE", "/api/notes/n1", (200, {"message": "Note deleted"}))
    remote.on("GET", "/api/notes", (200, notes_page(note_json("n2"))))

    assert await notes.delete("n1", lambda prompt: True) is True

    assert [n.id for n in notes.items] == ["n2"]


# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━
# Monthly goals
# ━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━━


async def test_goals_non_array_becomes_empty(goals, remote):
    remote.on("GET", "/api/monthly-goals", (200, {"error": "weird"}))

    await goals.load()

    assert goals.items == []
    assert goals.last_error is None


async def test_goals_create_update_delete_merge_locally(goals, remote):
    remote.on("GET", "/api/monthly-goals", (200, [goal_json("g1")]))
    remote.on("POST", "/api/monthly-goals", (201, goal_json("g2")))
    remote.on("PUT", "/api/monthly-goals/g1", (200, goal_json("g1", status="paused")))
    remote.on("DELETE", "/api/monthly-goals/g2", (200, {"message": "Goal deleted"}))
    await goals.load(month=3, year=2024)

    await goals.create(GoalForm(title="Meditate"))
    assert [g.id for g in goals.items] == ["g2", "g1"]

    await goals.change_status("g1", GoalStatus.PAUSED)
    assert body(remote.requests_to("PUT", "/api/monthly-goals/g1")[0]) == {"status": "paused"}
    assert goals.find("g1").status == GoalStatus.PAUSED

    await goals.delete("g2")
    assert [g.id for g in goals.items] == ["g1"]

    params = remote.requests_to("GET", "/api/monthly-goals")[0].url.params
    assert params["month"] == "3"
    assert params["year"] == "2024"


async def test_goals_view_filter_and_sort(goals, remote):
    remote.on(
        "GET",
        "/api/monthly-goals",
        (
            200,
            [
                goal_json("g1", title="Read", createdAt="2024-03-01T00:00:00Z",
                          stats={"totalDays": 10, "completedDays": 2, "completionRate": 20}),
                goal_json("g2", title="Exercise", status="paused", createdAt="2024-03-03T00:00:00Z",
                          stats={"totalDays": 10, "completedDays": 9, "completionRate": 90}),
                goal_json("g3", title="Cook", description="read recipes", createdAt="2024-03-02T00:00:00Z"),
            ],
        ),
    )
    await goals.load()

    assert [g.id for g in goals.visible_goals()] == ["g2", "g3", "g1"]

    goals.sort_by = "title"
    assert [g.title for g in goals.visible_goals()] == ["Cook", "Exercise", "Read"]

    goals.sort_by = "progress"
    assert [g.id for g in goals.visible_goals()] == ["g2", "g1", "g3"]

    goals.search_term = "read"
    assert {g.id for g in goals.visible_goals()} == {"g1", "g3"}

    goals.search_term = ""
    goals.status_filter = "paused"
    assert [g.id for g in goals.visible_goals()] == ["g2"]

    stats = goals.stats()
    assert stats["total"] == 3
    assert stats["active"] == 2
    assert stats["paused"] == 1
    assert stats["completed"] == 0


async def test_progress_report(goals, remote):
    remote.on(
        "GET",
        "/api/monthly-goals/progress/report",
        (200, {"totalGoals": 2, "activeGoals": 1, "completedTasks": 5, "totalTasks": 10,
               "completionRate": 50, "topGoals": [{"goalId": "g1", "title": "Read", "completionRate": 80}]}),
    )

    report = await goals.progress_report(3, 2024)

    assert report.completion_rate == 50
    assert report.top_goals[0].goal_id == "g1"
