from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..models import Profile
from .metrics import record_avatar_uploaded, record_storage_cleanup_failed
from .storage import StorageError, StorageService, get_avatar_storage, key_from_public_url
from .uploads import IncomingFile

logger = logging.getLogger(__name__)


class AvatarInputError(ValueError):
    pass


def validate_avatar(file: IncomingFile | None, max_bytes: int | None = None) -> IncomingFile:
    limit = settings.max_avatar_bytes if max_bytes is None else max_bytes
    if file is None:
        raise AvatarInputError("You must select an image to upload.")
    if file.size > limit:
        raise AvatarInputError(f"File size must be less than {limit // (1024 * 1024)}MB")
    if not file.content_type.startswith("image/"):
        raise AvatarInputError("File must be an image")
    if not file.data:
        raise AvatarInputError("Uploaded file is empty")
    return file


class ProfileService:
    def __init__(self, db: Session, account_id: str, storage: StorageService | None = None) -> None:
        self.db = db
        self.account_id = account_id
        self.bucket = settings.storage.avatars_bucket
        self._storage = storage

    @property
    def storage(self) -> StorageService:
        if self._storage is None:
            self._storage = get_avatar_storage()
        return self._storage

    def find(self) -> Optional[Profile]:
        return self.db.get(Profile, self.account_id)

    def load_or_create(self) -> Profile:
        profile = self.find()
        if profile is not None:
            return profile

        profile = Profile(id=self.account_id, avatar_url=None, full_name=None)
        self.db.add(profile)
        try:
            self.db.commit()
        except IntegrityError:
            # created by a concurrent request
            self.db.rollback()
            profile = self.find()
            if profile is None:
                raise
            return profile

        self.db.refresh(profile)
        logger.info("profile_created user_id=%s", self.account_id)
        return profile

    def update_name(self, full_name: str | None) -> Profile:
        profile = self.load_or_create()
        profile.full_name = (full_name or "").strip() or None
        profile.updated_at = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(profile)
        logger.info("profile_name_updated user_id=%s", self.account_id)
        return profile

    def replace_avatar(self, file: IncomingFile | None) -> Profile:
        """Upload a new avatar, point the profile at it, then drop the old object."""
        file = validate_avatar(file)

        profile = self.load_or_create()
        previous_url = profile.avatar_url

        stored = self.storage.upload_fileobj(self.account_id, file.data, file.filename, file.content_type)
        profile.avatar_url = stored.public_url
        profile.updated_at = datetime.now(timezone.utc)
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            self._remove_object(stored.key)
            raise
        self.db.refresh(profile)
        record_avatar_uploaded()
        logger.info("avatar_replaced user_id=%s key=%s", self.account_id, stored.key)

        previous_key = key_from_public_url(self.bucket, previous_url)
        if previous_key and previous_key != stored.key:
            self._remove_object(previous_key)
        return profile

    def _remove_object(self, key: str) -> bool:
        try:
            self.storage.delete(key)
        except StorageError:
            record_storage_cleanup_failed(self.bucket)
            logger.warning("avatar_cleanup_failed user_id=%s key=%s", self.account_id, key, exc_info=True)
            return False
        return True
