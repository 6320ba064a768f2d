from __future__ import annotations

import logging
from typing import Optional
from urllib.parse import urlparse

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..dependencies.auth import AuthContext, require_auth
from ..dependencies.db import get_db
from ..models import Document
from ..services.documents import (
    DocumentCollection,
    DocumentFilters,
    DocumentInputError,
    DocumentNotFound,
    filter_documents,
)
from ..services.file_types import display_kind
from ..services.storage import StorageError
from ..services.uploads import UploadTooLarge, read_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/documents")

STORED_FILE_NOT_REMOVED_MESSAGE = "Document deleted, but its stored file could not be removed."


def _preview_url(document: Document, kind: str) -> Optional[str]:
    if kind != "image":
        return None
    host = urlparse(document.file_url or "").hostname
    return document.file_url if host in settings.image_domains else None


def _serialize_document(document: Document) -> dict:
    kind = display_kind(document.file_url)
    return {
        "id": document.id,
        "name": document.name,
        "file_url": document.file_url,
        "user_id": document.user_id,
        "created_at": document.created_at.isoformat() if document.created_at else None,
        "is_favorite": bool(document.is_favorite),
        "is_offline": bool(document.is_offline),
        "file_type": document.file_type,
        "kind": kind,
        "preview_url": _preview_url(document, kind),
    }


@router.get("")
def list_documents(
    favorites: bool = Query(default=False),
    file_type: Optional[str] = Query(default=None),
    q: Optional[str] = Query(default=None),
    context: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
) -> dict:
    documents = DocumentCollection(db, context.account.id).fetch_all()
    selected = filter_documents(documents, DocumentFilters(favorites_only=favorites, file_type=file_type, query=q))
    return {
        "items": [_serialize_document(document) for document in selected],
        "total": len(selected),
        "total_unfiltered": len(documents),
    }


@router.post("", status_code=201)
def add_document(
    name: str = Form(default=""),
    link: Optional[str] = Form(default=None),
    file: Optional[UploadFile] = File(default=None),
    context: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
) -> dict:
    collection = DocumentCollection(db, context.account.id)
    try:
        incoming = read_upload(file, settings.max_document_bytes)
        document = collection.add(name, file=incoming, link=link)
    except (DocumentInputError, UploadTooLarge) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StorageError as exc:
        logger.error("document_upload_failed owner_id=%s error=%s", context.account.id, exc)
        raise HTTPException(status_code=502, detail="Error adding document: storage upload failed") from exc
    except SQLAlchemyError as exc:
        logger.error("document_insert_failed owner_id=%s error=%s", context.account.id, exc)
        raise HTTPException(status_code=500, detail="Error adding document: could not save the document") from exc
    return _serialize_document(document)


@router.get("/{doc_id}")
def get_document(
    doc_id: int,
    context: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
) -> dict:
    try:
        document = DocumentCollection(db, context.account.id).get(doc_id)
    except DocumentNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _serialize_document(document)


@router.delete("/{doc_id}")
def delete_document(
    doc_id: int,
    context: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
) -> dict:
    try:
        object_removed = DocumentCollection(db, context.account.id).delete(doc_id)
    except DocumentNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    payload = {"status": "deleted", "id": doc_id, "object_removed": object_removed}
    if object_removed is False:
        payload["warning"] = STORED_FILE_NOT_REMOVED_MESSAGE
    return payload


@router.post("/{doc_id}/favorite")
def toggle_favorite(
    doc_id: int,
    context: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
) -> dict:
    try:
        document = DocumentCollection(db, context.account.id).toggle_favorite(doc_id)
    except DocumentNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    return _serialize_document(document)
