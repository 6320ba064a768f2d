from __future__ import annotations

from urllib.parse import urlparse

UNKNOWN_FILE_TYPE = "unknown"

FILE_TYPE_BY_EXTENSION = {
    "pdf": "pdf",
    "doc": "doc",
    "docx": "doc",
    "jpg": "jpg",
    "jpeg": "jpg",
    "png": "png",
    "gif": "gif",
}

IMAGE_EXTENSIONS = frozenset({"jpg", "jpeg", "png", "gif"})


def extension_of(name: str | None) -> str:
    if not name:
        return ""
    tail = name.rsplit("/", 1)[-1]
    if "." not in tail:
        return ""
    return tail.rsplit(".", 1)[-1].lower()


def file_type_for(filename: str | None) -> str:
    """Tag stored with an uploaded document; fixed at creation time."""
    return FILE_TYPE_BY_EXTENSION.get(extension_of(filename), UNKNOWN_FILE_TYPE)


def display_kind(file_url: str | None) -> str:
    extension = extension_of(urlparse(file_url or "").path)
    if extension in IMAGE_EXTENSIONS:
        return "image"
    if extension == "pdf":
        return "pdf"
    if extension in ("doc", "docx"):
        return "doc"
    return "other"
