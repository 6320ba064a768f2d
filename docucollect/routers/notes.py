from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..dependencies.auth import AuthContext, require_auth
from ..dependencies.db import get_db
from ..models import Note
from ..services.notes import NoteBook, NoteForm, NoteInputError, NoteNotFound

router = APIRouter(prefix="/notes")


class NotePayload(BaseModel):
    title: str = ""
    content: str = ""


def _serialize_note(note: Note) -> dict:
    return {
        "id": note.id,
        "title": note.title,
        "content": note.content,
        "user_id": note.user_id,
        "created_at": note.created_at.isoformat() if note.created_at else None,
    }


def _serialize_form(form: NoteForm) -> dict:
    return {"note_id": form.note_id, "title": form.title, "content": form.content, "mode": form.mode}


@router.get("")
def list_notes(context: AuthContext = Depends(require_auth), db: Session = Depends(get_db)) -> dict:
    notes = NoteBook(db, context.account.id).fetch_all()
    return {"items": [_serialize_note(note) for note in notes], "total": len(notes)}


@router.get("/form")
def note_form(
    note_id: Optional[int] = Query(default=None),
    context: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
) -> dict:
    try:
        form = NoteBook(db, context.account.id).form(note_id)
    except NoteNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _serialize_form(form)


@router.post("", status_code=201)
def create_note(
    payload: NotePayload,
    context: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
) -> dict:
    try:
        note = NoteBook(db, context.account.id).create(payload.title, payload.content)
    except NoteInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _serialize_note(note)


@router.put("/{note_id}")
def update_note(
    note_id: int,
    payload: NotePayload,
    context: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
) -> dict:
    try:
        note = NoteBook(db, context.account.id).update(note_id, payload.title, payload.content)
    except NoteInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except NoteNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _serialize_note(note)


@router.delete("/{note_id}")
def delete_note(
    note_id: int,
    context: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
) -> dict:
    try:
        NoteBook(db, context.account.id).delete(note_id)
    except NoteNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return {"status": "deleted", "id": note_id}
