from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from ..models import Note
from .metrics import record_note_written

logger = logging.getLogger(__name__)


class NoteInputError(ValueError):
    pass


class NoteNotFound(LookupError):
    pass


@dataclass
class NoteForm:
    note_id: Optional[int] = None
    title: str = ""
    content: str = ""

    @property
    def mode(self) -> str:
        return "edit" if self.note_id is not None else "create"

    @classmethod
    def blank(cls) -> "NoteForm":
        return cls()

    @classmethod
    def from_note(cls, note: Note) -> "NoteForm":
        return cls(note_id=note.id, title=note.title, content=note.content)


def _clean(title: str | None, content: str | None) -> tuple[str, str]:
    title = (title or "").strip()
    content = (content or "").strip()
    if not title or not content:
        raise NoteInputError("Title and content are required")
    return title, content


class NoteBook:
    """Notes owned by one account; every query carries the owner filter."""

    def __init__(self, db: Session, owner_id: str) -> None:
        self.db = db
        self.owner_id = owner_id

    def _owned(self):
        return self.db.query(Note).filter(Note.user_id == self.owner_id)

    def fetch_all(self) -> list[Note]:
        return self._owned().order_by(Note.created_at.desc(), Note.id.desc()).all()

    def get(self, note_id: int) -> Note:
        note = self._owned().filter(Note.id == note_id).one_or_none()
        if note is None:
            raise NoteNotFound("Note not found")
        return note

    def form(self, note_id: int | None = None) -> NoteForm:
        if note_id is None:
            return NoteForm.blank()
        return NoteForm.from_note(self.get(note_id))

    def create(self, title: str | None, content: str | None) -> Note:
        title, content = _clean(title, content)
        note = Note(title=title, content=content, user_id=self.owner_id)
        self.db.add(note)
        self.db.commit()
        self.db.refresh(note)
        record_note_written("create")
        logger.info("note_created owner_id=%s note_id=%s", self.owner_id, note.id)
        return note

    def update(self, note_id: int, title: str | None, content: str | None) -> Note:
        title, content = _clean(title, content)
        note = self.get(note_id)
        note.title = title
        note.content = content
        self.db.commit()
        self.db.refresh(note)
        record_note_written("update")
        logger.info("note_updated owner_id=%s note_id=%s", self.owner_id, note.id)
        return note

    def delete(self, note_id: int) -> None:
        deleted = self._owned().filter(Note.id == note_id).delete(synchronize_session=False)
        if not deleted:
            self.db.rollback()
            raise NoteNotFound("Note not found")
        self.db.commit()
        record_note_written("delete")
        logger.info("note_deleted owner_id=%s note_id=%s", self.owner_id, note_id)
