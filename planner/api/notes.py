"""Note endpoints."""

import logging
from dataclasses import asdict, dataclass
from typing import Any, Optional

from .client import ApiClient
from .models import Note, NoteForm, NoteLink, NotesPage, NoteUpdate
from .payloads import coerce_list, parse_items, parse_one

logger = logging.getLogger(__name__)


@dataclass
class NoteFilters:
    """Query filters for the note list."""
    category: Optional[str] = None
    search: Optional[str] = None
    tag: Optional[str] = None
    is_pinned: Optional[bool] = None
    is_archived: Optional[bool] = None
    page: int = 1
    limit: int = 20
    sort_by: str = "updatedAt"  # "createdAt", "updatedAt", "title"
    sort_order: str = "desc"

    def to_params(self) -> dict[str, Any]:
        data = asdict(self)
        return {
            "category": data["category"],
            "search": data["search"],
            "tag": data["tag"],
            "isPinned": data["is_pinned"],
            "isArchived": data["is_archived"],
            "page": data["page"],
            "limit": data["limit"],
            "sortBy": data["sort_by"],
            "sortOrder": data["sort_order"],
        }


class NotesAPI:
    """Notes under /api/notes."""

    def __init__(self, client: ApiClient):
        """Initialize with API client."""
        self.client = client

    async def create(self, form: NoteForm) -> Note:
        data = await self.client.post("/api/notes", form.to_payload())
        return parse_one(Note, data)

    async def list_notes(self, filters: Optional[NoteFilters] = None) -> NotesPage:
        """
        Fetch one page of notes.

        A bare array is accepted too and treated as a single page.
        """
        filters = filters or NoteFilters()
        data = await self.client.get("/api/notes", params=filters.to_params())

        if isinstance(data, dict):
            notes = parse_items(Note, coerce_list(data.get("notes"), None))
            return NotesPage(
                notes=notes,
                total=data.get("total") or len(notes),
                page=data.get("page") or 1,
                limit=data.get("limit") or filters.limit,
                total_pages=data.get("totalPages") or 1,
            )

        notes = parse_items(Note, coerce_list(data))
        return NotesPage(notes=notes, total=len(notes), limit=filters.limit)

    async def get(self, note_id: str) -> tuple[Note, list[NoteLink]]:
        data = await self.client.get(f"/api/notes/{note_id}")
        note_data = data.get("note", data) if isinstance(data, dict) else data
        links = data.get("links", []) if isinstance(data, dict) else []
        return parse_one(Note, note_data), parse_items(NoteLink, coerce_list(links))

    async def update(self, note_id: str, form: NoteUpdate) -> Note:
        data = await self.client.put(f"/api/notes/{note_id}", form.to_payload())
        return parse_one(Note, data)

    async def delete(self, note_id: str) -> Any:
        return await self.client.delete(f"/api/notes/{note_id}")

    async def toggle_pin(self, note_id: str) -> Note:
        data = await self.client.post(f"/api/notes/{note_id}/pin")
        return parse_one(Note, data)

    async def toggle_archive(self, note_id: str) -> Note:
        data = await self.client.post(f"/api/notes/{note_id}/archive")
        return parse_one(Note, data)

    async def categories(self) -> list[str]:
        data = await self.client.get("/api/notes/categories/list")
        return [str(c) for c in coerce_list(data, "categories")]

    async def tags(self) -> list[str]:
        data = await self.client.get("/api/notes/tags/list")
        return [str(t) for t in coerce_list(data, "tags")]
