from __future__ import annotations

import io
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Iterator, Optional
from urllib.parse import quote, unquote

from botocore.exceptions import BotoCoreError, ClientError

from ..config import settings
from .aws import boto3_client


class StorageError(RuntimeError):
    """Raised when the object storage rejects or fails a request."""


@dataclass
class StoredFile:
    key: str
    public_url: str


def public_prefix(bucket: str) -> str:
    return f"{settings.storage.public_url}/{bucket}/"


def key_from_public_url(bucket: str, url: str | None) -> Optional[str]:
    """Return the object key for a URL inside ``bucket``'s public prefix, else None."""
    prefix = public_prefix(bucket)
    if not url or not url.startswith(prefix):
        return None
    key = url[len(prefix) :].split("?", 1)[0].split("#", 1)[0]
    return unquote(key) or None


class StorageService:
    def __init__(self, bucket: str) -> None:
        self.bucket = bucket
        self._client = boto3_client("s3")

    def _build_key(self, owner_id: str, original_name: str) -> str:
        suffix = Path(original_name).suffix.lower() or ".bin"
        return f"{owner_id}/{uuid.uuid4()}{suffix}"

    def public_url(self, key: str) -> str:
        return f"{public_prefix(self.bucket)}{quote(key)}"

    def key_from_public_url(self, url: str | None) -> Optional[str]:
        return key_from_public_url(self.bucket, url)

    def upload_fileobj(
        self,
        owner_id: str,
        file_obj: BinaryIO | bytes,
        filename: str,
        content_type: str,
    ) -> StoredFile:
        buffer: BinaryIO
        if isinstance(file_obj, (bytes, bytearray)):
            buffer = io.BytesIO(file_obj)
        else:
            buffer = file_obj
            buffer.seek(0)

        key = self._build_key(owner_id, filename)
        try:
            self._client.upload_fileobj(buffer, self.bucket, key, ExtraArgs={"ContentType": content_type})
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to upload to bucket {self.bucket}: {exc}") from exc

        return StoredFile(key=key, public_url=self.public_url(key))

    def delete(self, key: str) -> None:
        try:
            self._client.delete_object(Bucket=self.bucket, Key=key)
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to delete object from bucket {self.bucket}: {exc}") from exc

    def iter_keys(self, prefix: str = "") -> Iterator[str]:
        try:
            paginator = self._client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                for item in page.get("Contents", []):
                    yield item["Key"]
        except (BotoCoreError, ClientError) as exc:
            raise StorageError(f"Failed to list bucket {self.bucket}: {exc}") from exc


def get_document_storage() -> StorageService:
    return StorageService(settings.storage.documents_bucket)


def get_avatar_storage() -> StorageService:
    return StorageService(settings.storage.avatars_bucket)
