from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..config import settings
from ..dependencies.auth import AuthContext, require_auth
from ..dependencies.db import get_db
from ..models import Profile
from ..services.profiles import AvatarInputError, ProfileService
from ..services.storage import StorageError
from ..services.uploads import UploadTooLarge, read_upload

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/profile")


class UpdateNameRequest(BaseModel):
    full_name: Optional[str] = Field(default=None, max_length=200)


def _serialize_profile(profile: Profile, context: AuthContext) -> dict:
    return {
        "id": profile.id,
        "email": context.account.email,
        "avatar_url": profile.avatar_url,
        "full_name": profile.full_name,
        "updated_at": profile.updated_at.isoformat() if profile.updated_at else None,
    }


@router.get("")
def get_profile(context: AuthContext = Depends(require_auth), db: Session = Depends(get_db)) -> dict:
    profile = ProfileService(db, context.account.id).load_or_create()
    return _serialize_profile(profile, context)


@router.patch("")
def update_profile_name(
    payload: UpdateNameRequest,
    context: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
) -> dict:
    profile = ProfileService(db, context.account.id).update_name(payload.full_name)
    return _serialize_profile(profile, context)


@router.post("/avatar")
def upload_avatar(
    file: Optional[UploadFile] = File(default=None),
    context: AuthContext = Depends(require_auth),
    db: Session = Depends(get_db),
) -> dict:
    service = ProfileService(db, context.account.id)
    try:
        incoming = read_upload(file, settings.max_avatar_bytes)
        profile = service.replace_avatar(incoming)
    except (AvatarInputError, UploadTooLarge) as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except StorageError as exc:
        logger.error("avatar_upload_failed user_id=%s error=%s", context.account.id, exc)
        raise HTTPException(status_code=502, detail="Avatar upload failed") from exc
    except SQLAlchemyError as exc:
        logger.error("avatar_save_failed user_id=%s error=%s", context.account.id, exc)
        raise HTTPException(status_code=500, detail="Avatar upload failed: could not save the profile") from exc
    return _serialize_profile(profile, context)
