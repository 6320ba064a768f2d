from __future__ import annotations

from docucollect.config import settings
from docucollect.services.storage import StorageService, key_from_public_url, public_prefix


def test_public_prefix_points_at_hosted_bucket():
    assert public_prefix("documents") == (
        "https://docucollect-test.supabase.co/storage/v1/object/public/documents/"
    )


def test_key_from_public_url_only_matches_own_bucket():
    documents = public_prefix(settings.storage.documents_bucket)
    avatars = public_prefix(settings.storage.avatars_bucket)

    assert key_from_public_url("documents", f"{documents}owner-1/a%20b.pdf?download=1") == "owner-1/a b.pdf"
    assert key_from_public_url("documents", f"{avatars}owner-1/face.png") is None
    assert key_from_public_url("documents", "https://example.com/documents/owner-1/a.pdf") is None
    assert key_from_public_url("documents", None) is None


def test_upload_stores_object_under_owner_prefix(mock_storage):
    storage = StorageService(settings.storage.documents_bucket)

    stored = storage.upload_fileobj("owner-1", b"%PDF-1.7", "Lease.PDF", "application/pdf")

    assert stored.key.startswith("owner-1/")
    assert stored.key.endswith(".pdf")
    assert stored.public_url == storage.public_url(stored.key)
    head = mock_storage.head_object(Bucket=settings.storage.documents_bucket, Key=stored.key)
    assert head["ContentType"] == "application/pdf"
    assert list(storage.iter_keys("owner-1/")) == [stored.key]
