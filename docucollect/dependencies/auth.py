from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from fastapi import Depends, HTTPException, Request, Response, status
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer

from ..config import settings
from ..services.auth import AuthError, AuthService, AuthSession
from ..services.session_store import Account, AuthEvent, SessionStore, get_session_store

logger = logging.getLogger(__name__)

_verifier_serializer = URLSafeTimedSerializer(settings.session_secret, salt="pkce-verifier")


@dataclass
class AuthContext:
    account: Account
    access_token: str
    refresh_token: Optional[str] = None


def get_auth_service() -> AuthService:
    return AuthService()


def optional_auth(
    request: Request,
    response: Response,
    store: SessionStore = Depends(get_session_store),
) -> Optional[AuthContext]:
    """Resolve the session cookies to an account, refreshing an expired access token."""
    raw_token = request.cookies.get(settings.cookie_name)
    refresh_token = request.cookies.get(settings.refresh_cookie_name)
    if not raw_token and not refresh_token:
        return None

    account = store.lookup(raw_token)
    if account is None and raw_token:
        account = AuthService().account_for_token(raw_token)
        if account is not None:
            store.remember(raw_token, account)

    if account is None and refresh_token:
        try:
            session = AuthService().refresh(refresh_token)
        except AuthError as exc:
            logger.info("session_refresh_failed reason=%s", exc)
            return None
        attach_session_cookies(response, session)
        store.forget(raw_token, event=None)
        store.remember(
            session.access_token,
            session.account,
            event=AuthEvent.TOKEN_REFRESHED,
            ttl_seconds=min(store.cache_seconds, session.expires_in),
        )
        raw_token, refresh_token, account = session.access_token, session.refresh_token, session.account

    if account is None or not raw_token:
        return None

    request.state.user_id = account.id
    return AuthContext(account=account, access_token=raw_token, refresh_token=refresh_token)


def require_session(context: Optional[AuthContext] = Depends(optional_auth)) -> AuthContext:
    if context is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")
    return context


def require_auth(context: AuthContext = Depends(require_session)) -> AuthContext:
    if not context.account.email_confirmed:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Email confirmation required")
    return context


def attach_session_cookies(response: Response, session: AuthSession) -> None:
    max_age = int(timedelta(hours=settings.session_ttl_hours).total_seconds())
    for key, value in (
        (settings.cookie_name, session.access_token),
        (settings.refresh_cookie_name, session.refresh_token),
    ):
        response.set_cookie(
            key=key,
            value=value,
            httponly=True,
            secure=settings.environment == "production",
            samesite="lax",
            domain=settings.cookie_domain,
            path="/",
            max_age=max_age,
        )


def clear_session_cookies(response: Response) -> None:
    for key in (settings.cookie_name, settings.refresh_cookie_name):
        response.delete_cookie(key=key, domain=settings.cookie_domain, path="/")


def attach_verifier_cookie(response: Response, code_verifier: Optional[str], purpose: str) -> None:
    if not code_verifier:
        return
    response.set_cookie(
        key=settings.verifier_cookie_name,
        value=_verifier_serializer.dumps({"verifier": code_verifier, "purpose": purpose}),
        httponly=True,
        secure=settings.environment == "production",
        samesite="lax",
        domain=settings.cookie_domain,
        path="/auth",
        max_age=settings.verifier_ttl_minutes * 60,
    )


def read_verifier_cookie(request: Request) -> Optional[dict]:
    raw_value = request.cookies.get(settings.verifier_cookie_name)
    if not raw_value:
        return None
    try:
        return _verifier_serializer.loads(raw_value, max_age=settings.verifier_ttl_minutes * 60)
    except SignatureExpired:
        logger.info("verifier_cookie_expired")
        return None
    except BadSignature:
        logger.warning("verifier_cookie_invalid")
        return None


def clear_verifier_cookie(response: Response) -> None:
    response.delete_cookie(key=settings.verifier_cookie_name, domain=settings.cookie_domain, path="/auth")
