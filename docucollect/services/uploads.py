from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import UploadFile

CHUNK_SIZE = 1024 * 1024


class UploadTooLarge(ValueError):
    def __init__(self, limit: int) -> None:
        super().__init__(f"File size must be less than {limit // (1024 * 1024)}MB")
        self.limit = limit


@dataclass
class IncomingFile:
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def read_upload(upload: Optional[UploadFile], max_bytes: int) -> Optional[IncomingFile]:
    """Buffer an uploaded file, refusing to read past ``max_bytes``."""
    if upload is None or not upload.filename:
        return None

    chunks: list[bytes] = []
    total_bytes = 0
    while True:
        chunk = upload.file.read(CHUNK_SIZE)
        if not chunk:
            break
        total_bytes += len(chunk)
        if total_bytes > max_bytes:
            raise UploadTooLarge(max_bytes)
        chunks.append(chunk)

    return IncomingFile(
        filename=upload.filename,
        content_type=upload.content_type or "application/octet-stream",
        data=b"".join(chunks),
    )
