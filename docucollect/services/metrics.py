from __future__ import annotations

from prometheus_client import Counter


DOCUMENTS_ADDED_COUNTER = Counter(
    "dc_documents_added_total",
    "Documents added, by source",
    ["source"],
)

DOCUMENTS_DELETED_COUNTER = Counter(
    "dc_documents_deleted_total",
    "Documents deleted",
)

FAVORITE_TOGGLES_COUNTER = Counter(
    "dc_favorite_toggles_total",
    "Favorite flag flips",
)

STORAGE_CLEANUP_FAILURES_COUNTER = Counter(
    "dc_storage_cleanup_failures_total",
    "Best-effort object removals that failed, by bucket",
    ["bucket"],
)

NOTES_WRITTEN_COUNTER = Counter(
    "dc_notes_written_total",
    "Notes created, updated or deleted",
    ["action"],
)

AVATAR_UPLOADS_COUNTER = Counter(
    "dc_avatar_uploads_total",
    "Avatar images replaced",
)

AUTH_EVENTS_COUNTER = Counter(
    "dc_auth_events_total",
    "Session store events",
    ["event"],
)


def record_document_added(source: str) -> None:
    DOCUMENTS_ADDED_COUNTER.labels(source=source).inc()


def record_document_deleted() -> None:
    DOCUMENTS_DELETED_COUNTER.inc()


def record_favorite_toggled() -> None:
    FAVORITE_TOGGLES_COUNTER.inc()


def record_storage_cleanup_failed(bucket: str) -> None:
    STORAGE_CLEANUP_FAILURES_COUNTER.labels(bucket=bucket).inc()


def record_note_written(action: str) -> None:
    NOTES_WRITTEN_COUNTER.labels(action=action).inc()


def record_avatar_uploaded() -> None:
    AVATAR_UPLOADS_COUNTER.inc()


def record_auth_event(event: str) -> None:
    AUTH_EVENTS_COUNTER.labels(event=event).inc()
