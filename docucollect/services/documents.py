from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional
from urllib.parse import urlparse

from sqlalchemy import not_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..models import Document
from .file_types import UNKNOWN_FILE_TYPE, file_type_for
from .metrics import (
    record_document_added,
    record_document_deleted,
    record_favorite_toggled,
    record_storage_cleanup_failed,
)
from .storage import StorageError, StorageService, StoredFile, get_document_storage, key_from_public_url
from .uploads import IncomingFile

logger = logging.getLogger(__name__)


class DocumentInputError(ValueError):
    """Raised before any network call when the submitted form is incomplete."""


class DocumentNotFound(LookupError):
    pass


@dataclass
class DocumentFilters:
    favorites_only: bool = False
    file_type: Optional[str] = None
    query: Optional[str] = None


def filter_documents(documents: Iterable[Document], filters: DocumentFilters) -> list[Document]:
    """Narrow an already fetched list; no filtering happens in SQL."""
    needle = (filters.query or "").strip().lower()
    file_type = (filters.file_type or "").strip().lower()
    selected = []
    for document in documents:
        if filters.favorites_only and not document.is_favorite:
            continue
        if file_type and (document.file_type or UNKNOWN_FILE_TYPE) != file_type:
            continue
        if needle and needle not in (document.name or "").lower():
            continue
        selected.append(document)
    return selected


def _is_web_link(value: str) -> bool:
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


class DocumentCollection:
    """Documents owned by one account."""

    def __init__(self, db: Session, owner_id: str, storage: StorageService | None = None) -> None:
        self.db = db
        self.owner_id = owner_id
        self.bucket = settings.storage.documents_bucket
        self._storage = storage

    @property
    def storage(self) -> StorageService:
        if self._storage is None:
            self._storage = get_document_storage()
        return self._storage

    def _owned(self):
        return self.db.query(Document).filter(Document.user_id == self.owner_id)

    def fetch_all(self) -> list[Document]:
        return self._owned().order_by(Document.created_at.desc(), Document.id.desc()).all()

    def get(self, doc_id: int) -> Document:
        document = self._owned().filter(Document.id == doc_id).one_or_none()
        if document is None:
            raise DocumentNotFound("Document not found")
        return document

    def add(self, name: str | None, file: IncomingFile | None = None, link: str | None = None) -> Document:
        name = (name or "").strip()
        link = (link or "").strip() or None
        if not name:
            raise DocumentInputError("Document name is required")
        if file is None and not link:
            raise DocumentInputError("Either file or link is required")
        if file is not None and not file.data:
            raise DocumentInputError("Uploaded file is empty")
        if file is None and not _is_web_link(link or ""):
            raise DocumentInputError("Link must be an http(s) URL")
        if file is None and key_from_public_url(self.bucket, link) is not None:
            raise DocumentInputError("Link must not point into document storage; upload the file instead")

        stored: StoredFile | None = None
        if file is not None:
            stored = self.storage.upload_fileobj(self.owner_id, file.data, file.filename, file.content_type)
            document = Document(
                name=name,
                file_url=stored.public_url,
                user_id=self.owner_id,
                is_offline=True,
                is_favorite=False,
                file_type=file_type_for(file.filename),
            )
        else:
            document = Document(
                name=name,
                file_url=link,
                user_id=self.owner_id,
                is_offline=False,
                is_favorite=False,
                file_type=UNKNOWN_FILE_TYPE,
            )

        self.db.add(document)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            if stored is not None:
                self._remove_object(stored.key)
            raise
        self.db.refresh(document)

        source = "upload" if stored is not None else "link"
        record_document_added(source)
        logger.info(
            "document_added owner_id=%s document_id=%s source=%s file_type=%s",
            self.owner_id,
            document.id,
            source,
            document.file_type,
        )
        return document

    def delete(self, doc_id: int) -> Optional[bool]:
        """Delete the row, then its stored object.

        Returns None when the row is not backed by an object this account
        uploaded, else whether the object removal succeeded.
        """
        document = self.get(doc_id)
        file_url = document.file_url
        uploaded = bool(document.is_offline)
        self.db.delete(document)
        self.db.commit()
        record_document_deleted()
        logger.info("document_deleted owner_id=%s document_id=%s", self.owner_id, doc_id)

        key = key_from_public_url(self.bucket, file_url)
        # only objects this account uploaded, stored under its own prefix
        if key is None or not uploaded or not key.startswith(f"{self.owner_id}/"):
            return None
        return self._remove_object(key)

    def toggle_favorite(self, doc_id: int) -> Document:
        updated = (
            self._owned()
            .filter(Document.id == doc_id)
            .update({Document.is_favorite: not_(Document.is_favorite)}, synchronize_session=False)
        )
        if not updated:
            self.db.rollback()
            raise DocumentNotFound("Document not found")
        self.db.commit()
        record_favorite_toggled()
        return self.get(doc_id)

    def _remove_object(self, key: str) -> bool:
        try:
            self.storage.delete(key)
        except StorageError:
            record_storage_cleanup_failed(self.bucket)
            logger.warning("document_object_cleanup_failed owner_id=%s key=%s", self.owner_id, key, exc_info=True)
            return False
        return True


def find_orphaned_keys(db: Session, storage: StorageService) -> list[str]:
    """Objects in the documents bucket that no document row points at."""
    referenced = {storage.key_from_public_url(url) for (url,) in db.query(Document.file_url)}
    referenced.discard(None)
    return [key for key in storage.iter_keys() if key not in referenced]


def prune_orphaned_objects(db: Session, storage: StorageService, apply: bool = False) -> list[str]:
    orphans = find_orphaned_keys(db, storage)
    if apply:
        for key in orphans:
            storage.delete(key)
            logger.info("orphan_object_deleted bucket=%s key=%s", storage.bucket, key)
    return orphans
