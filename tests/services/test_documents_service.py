from __future__ import annotations

from types import SimpleNamespace

import pytest
from sqlalchemy.exc import SQLAlchemyError

from docucollect.config import settings
from docucollect.db.session import SessionLocal
from docucollect.models import Document
from docucollect.services.documents import (
    DocumentCollection,
    DocumentFilters,
    DocumentInputError,
    filter_documents,
    find_orphaned_keys,
    prune_orphaned_objects,
)
from docucollect.services.storage import get_document_storage, key_from_public_url
from docucollect.services.uploads import IncomingFile


def _doc(name: str, file_type: str = "unknown", favorite: bool = False):
    return SimpleNamespace(name=name, file_type=file_type, is_favorite=favorite)


DOCUMENTS = [
    _doc("Tax Return 2023", "pdf", favorite=True),
    _doc("Passport scan", "jpg"),
    _doc("tax notes"),
]


def test_filter_by_name_is_case_insensitive():
    selected = filter_documents(DOCUMENTS, DocumentFilters(query="TAX"))
    assert [doc.name for doc in selected] == ["Tax Return 2023", "tax notes"]


def test_filters_combine():
    assert filter_documents(DOCUMENTS, DocumentFilters(favorites_only=True)) == [DOCUMENTS[0]]
    assert filter_documents(DOCUMENTS, DocumentFilters(file_type="jpg")) == [DOCUMENTS[1]]
    assert filter_documents(DOCUMENTS, DocumentFilters(favorites_only=True, file_type="jpg")) == []
    assert filter_documents(DOCUMENTS, DocumentFilters()) == DOCUMENTS


def test_add_validates_before_touching_storage():
    class ExplodingStorage:
        def upload_fileobj(self, *args, **kwargs):
            raise AssertionError("storage must not be called")

    with SessionLocal() as db:
        collection = DocumentCollection(db, "owner-1", storage=ExplodingStorage())
        with pytest.raises(DocumentInputError, match="Document name is required"):
            collection.add("  ", file=IncomingFile("lease.pdf", "application/pdf", b"%PDF"))
        with pytest.raises(DocumentInputError, match="Either file or link is required"):
            collection.add("Lease")
        with pytest.raises(DocumentInputError, match="Uploaded file is empty"):
            collection.add("Lease", file=IncomingFile("lease.pdf", "application/pdf", b""))
        with pytest.raises(DocumentInputError, match="http"):
            collection.add("Lease", link="javascript:alert(1)")


def test_add_removes_uploaded_object_when_insert_fails(mock_storage, monkeypatch):
    with SessionLocal() as db:
        collection = DocumentCollection(db, "owner-1")

        def reject_commit():
            raise SQLAlchemyError("insert rejected")

        monkeypatch.setattr(db, "commit", reject_commit)
        with pytest.raises(SQLAlchemyError):
            collection.add("Lease", file=IncomingFile("lease.pdf", "application/pdf", b"%PDF-1.7"))

    listing = mock_storage.list_objects_v2(Bucket=settings.storage.documents_bucket)
    assert listing.get("KeyCount", 0) == 0


def test_file_wins_when_both_file_and_link_are_given(mock_storage):
    with SessionLocal() as db:
        document = DocumentCollection(db, "owner-1").add(
            "Lease",
            file=IncomingFile("lease.pdf", "application/pdf", b"%PDF-1.7"),
            link="https://example.com/lease",
        )
        assert document.is_offline is True
        assert document.file_type == "pdf"
        assert key_from_public_url(settings.storage.documents_bucket, document.file_url) is not None


def test_find_and_prune_orphaned_objects(mock_storage):
    bucket = settings.storage.documents_bucket
    mock_storage.put_object(Bucket=bucket, Key="owner-1/kept.pdf", Body=b"%PDF")
    mock_storage.put_object(Bucket=bucket, Key="owner-1/orphan.pdf", Body=b"%PDF")
    storage = get_document_storage()

    with SessionLocal() as db:
        db.add(
            Document(
                name="Kept",
                file_url=storage.public_url("owner-1/kept.pdf"),
                user_id="owner-1",
                is_offline=True,
                file_type="pdf",
            )
        )
        db.add(Document(name="Link", file_url="https://example.com/doc", user_id="owner-1"))
        db.commit()

        assert find_orphaned_keys(db, storage) == ["owner-1/orphan.pdf"]
        assert prune_orphaned_objects(db, storage, apply=False) == ["owner-1/orphan.pdf"]
        assert [obj["Key"] for obj in mock_storage.list_objects_v2(Bucket=bucket)["Contents"]] == [
            "owner-1/kept.pdf",
            "owner-1/orphan.pdf",
        ]

        prune_orphaned_objects(db, storage, apply=True)

    keys = [obj["Key"] for obj in mock_storage.list_objects_v2(Bucket=bucket)["Contents"]]
    assert keys == ["owner-1/kept.pdf"]
