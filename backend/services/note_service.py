from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4


class NoteStoreError(RuntimeError):
    """A note could not be written."""


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Note:
    content: str
    note_id: str = field(default_factory=lambda: uuid4().hex)
    created_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.note_id,
            "content": self.content,
            "created_at": self.created_at.isoformat(),
        }


class NoteService:
    """In-process note store. One insert per create_note call."""

    def __init__(self) -> None:
        self._notes: list[Note] = []

    def create_note(self, content: str) -> Note:
        if not content.strip():
            raise ValueError("note content must not be empty")
        note = Note(content=content)
        self._notes.append(note)
        return note

    def list_notes(self) -> list[Note]:
        # Newest first; insertion order breaks created_at ties
        return list(reversed(self._notes))

    def __len__(self) -> int:
        return len(self._notes)
