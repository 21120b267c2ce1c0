"""Notes page controller."""

import logging
from dataclasses import replace
from typing import Any, Callable, Optional

from ..api.errors import ApiError
from ..api.models import Note, NoteForm, NoteLink, NoteUpdate
from ..api.notes import NoteFilters, NotesAPI
from .base import ListController

logger = logging.getLogger(__name__)

DELETE_NOTE_PROMPT = "Are you sure you want to delete this note?"

Confirm = Callable[[str], bool]


class NotesController(ListController[Note]):
    """
    Owns one page of notes plus the category/tag facets.

    Creates, edits and deletes reload the list (and facets, since a new note
    can introduce a category or tag). Pin and archive toggles merge the
    note the server returns.
    """

    def __init__(self, api: NotesAPI, filters: Optional[NoteFilters] = None):
        """Initialize with notes API and starting filters."""
        super().__init__()
        self.api = api
        self.filters = filters or NoteFilters()
        self.total = 0
        self.page = 1
        self.total_pages = 1
        self.categories: list[str] = []
        self.tags: list[str] = []

    async def set_filters(self, **changes: Any):
        """Apply filter changes and reload. Any change without a page goes back to page 1."""
        changes.setdefault("page", 1)
        self.filters = replace(self.filters, **changes)
        await self.load()

    async def load(self):
        await self.load_notes()
        await self.load_facets()

    async def load_notes(self):
        generation = self._next_generation()
        self.is_loading = True
        try:
            result = await self.api.list_notes(self.filters)
            if not self._is_current(generation):
                return
            self.items = result.notes
            self.total = result.total
            self.page = result.page
            self.total_pages = result.total_pages
            logger.info(f"Loaded {len(self.items)} notes (page {self.page}/{self.total_pages})")
        except ApiError as e:
            self._fail(e, "Could not load notes")
        finally:
            if generation == self._generation:
                self.is_loading = False

    async def load_facets(self):
        """Refresh categories and tags. Both are optional, so failures are only logged."""
        try:
            self.categories = await self.api.categories()
        except ApiError as e:
            logger.warning(f"Error loading categories: {e}")
        try:
            self.tags = await self.api.tags()
        except ApiError as e:
            logger.warning(f"Error loading tags: {e}")

    async def detail(self, note_id: str) -> Optional[tuple[Note, list[NoteLink]]]:
        """Fetch one note with the link previews the server stored for it."""
        try:
            note, links = await self.api.get(note_id)
        except ApiError as e:
            self._fail(e, e.message or "Could not load note")
            return None

        logger.info(f"Loaded note {note_id} with {len(links)} stored links")
        return note, links

    async def create(self, form: NoteForm) -> Optional[Note]:
        try:
            note = await self.api.create(form)
        except ApiError as e:
            self._fail(e, e.message or "Could not create note")
            return None

        self.notify("success", "Note created")
        await self.load()
        return note

    async def update(self, note_id: str, form: NoteUpdate) -> Optional[Note]:
        try:
            note = await self.api.update(note_id, form)
        except ApiError as e:
            self._fail(e, e.message or "Could not update note")
            return None

        self.notify("success", "Note updated")
        await self.load()
        return note

    async def delete(self, note_id: str, confirm: Confirm) -> bool:
        """Delete a note after confirm(prompt) returns True."""
        if not confirm(DELETE_NOTE_PROMPT):
            logger.debug(f"Delete of note {note_id} cancelled")
            return False

        try:
            await self.api.delete(note_id)
        except ApiError as e:
            self._fail(e, e.message or "Could not delete note")
            return False

        self.notify("success", "Note deleted")
        await self.load_notes()
        return True

    async def toggle_pin(self, note_id: str) -> Optional[Note]:
        try:
            note = await self.api.toggle_pin(note_id)
        except ApiError as e:
            self._fail(e, e.message or "Could not update pin")
            return None

        self._replace(note)
        self.notify("success", "Pin updated")
        return note

    async def toggle_archive(self, note_id: str) -> Optional[Note]:
        try:
            note = await self.api.toggle_archive(note_id)
        except ApiError as e:
            self._fail(e, e.message or "Could not update archive")
            return None

        self._replace(note)
        self.notify("success", "Archive updated")
        return note

    def sections(self) -> dict[str, list[Note]]:
        """Group the page into pinned, other and archived notes."""
        return {
            "pinned": [n for n in self.items if n.is_pinned and not n.is_archived],
            "unpinned": [n for n in self.items if not n.is_pinned and not n.is_archived],
            "archived": [n for n in self.items if n.is_archived],
        }

    def stats(self) -> dict[str, int]:
        return {
            "total": self.total,
            "pinned": sum(1 for n in self.items if n.is_pinned),
            "archived": sum(1 for n in self.items if n.is_archived),
            "categories": len(self.categories),
        }
