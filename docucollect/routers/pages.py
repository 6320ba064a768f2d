from __future__ import annotations

from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ..dependencies.auth import AuthContext, optional_auth
from ..dependencies.db import get_db
from ..services.auth import AuthMode, OAuthProvider
from ..services.profiles import ProfileService
from .auth import serialize_account

router = APIRouter(tags=["pages"])

WORKSPACE_SECTIONS = ["documents", "notes"]


def _landing_view() -> dict:
    return {
        "view": "landing",
        "auth": {
            "modes": [mode.value for mode in AuthMode],
            "default_mode": AuthMode.SIGN_IN.value,
            "magic_link": True,
            "oauth_providers": [provider.value for provider in OAuthProvider],
        },
    }


@router.get("/")
def home(
    section: Literal["documents", "notes"] = Query(default="documents"),
    context: Optional[AuthContext] = Depends(optional_auth),
    db: Session = Depends(get_db),
) -> dict:
    """Decide which top-level view mounts for the current session."""
    if context is None or not context.account.email_confirmed:
        return _landing_view()

    # read-only: the profile row is only created from the profile page
    profile = ProfileService(db, context.account.id).find()
    return {
        "view": "workspace",
        "account": serialize_account(context.account),
        "sections": WORKSPACE_SECTIONS,
        "active_section": section,
        "avatar_url": profile.avatar_url if profile else None,
        "profile_path": "/profile",
    }
