from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response
from fastapi.responses import RedirectResponse
from pydantic import BaseModel, EmailStr, Field

from ..dependencies.auth import (
    AuthContext,
    attach_session_cookies,
    attach_verifier_cookie,
    clear_session_cookies,
    clear_verifier_cookie,
    get_auth_service,
    optional_auth,
    read_verifier_cookie,
    require_session,
)
from ..services.auth import (
    CONFIRMATION_SENT_MESSAGE,
    AlreadyRegisteredError,
    AuthError,
    AuthService,
    AuthSession,
    OAuthProvider,
)
from ..services.session_store import Account, AuthEvent, SessionStore, get_session_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])

PASSWORD_UPDATED_MESSAGE = "Password updated successfully! Please sign in with your new password."


class CredentialsRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class EmailRequest(BaseModel):
    email: EmailStr


class NewPasswordRequest(BaseModel):
    password: str


def serialize_account(account: Account) -> dict:
    return {"id": account.id, "email": account.email, "email_confirmed": account.email_confirmed}


def _safe_next(next_path: Optional[str], default: str = "/") -> str:
    if next_path and next_path.startswith("/") and not next_path.startswith("//"):
        return next_path
    return default


def _start_session(response: Response, store: SessionStore, session: AuthSession, event: AuthEvent) -> dict:
    attach_session_cookies(response, session)
    store.remember(
        session.access_token,
        session.account,
        event=event,
        ttl_seconds=min(store.cache_seconds, session.expires_in),
    )
    return {"account": serialize_account(session.account)}


@router.post("/sign-in")
def sign_in(
    payload: CredentialsRequest,
    response: Response,
    store: SessionStore = Depends(get_session_store),
    auth: AuthService = Depends(get_auth_service),
) -> dict:
    try:
        session = auth.sign_in_with_password(payload.email, payload.password)
    except AuthError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return _start_session(response, store, session, AuthEvent.SIGNED_IN)


@router.post("/sign-up")
def sign_up(
    payload: CredentialsRequest,
    response: Response,
    store: SessionStore = Depends(get_session_store),
    auth: AuthService = Depends(get_auth_service),
) -> dict:
    try:
        session = auth.sign_up(payload.email, payload.password)
    except AlreadyRegisteredError as exc:
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    except AuthError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    if session is None:
        return {"status": "confirmation_sent", "message": CONFIRMATION_SENT_MESSAGE}
    return {"status": "signed_in", **_start_session(response, store, session, AuthEvent.SIGNED_IN)}


@router.post("/forgot-password")
def forgot_password(
    payload: EmailRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
) -> dict:
    try:
        verifier = auth.send_password_reset(payload.email)
    except AuthError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    attach_verifier_cookie(response, verifier, "recovery")
    return {"status": "sent"}


@router.post("/magic-link")
def send_magic_link(
    payload: EmailRequest,
    response: Response,
    auth: AuthService = Depends(get_auth_service),
) -> dict:
    try:
        verifier = auth.send_magic_link(payload.email)
    except AuthError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    attach_verifier_cookie(response, verifier, "magic_link")
    return {"status": "sent"}


@router.get("/oauth/{provider}")
def oauth_sign_in(provider: OAuthProvider, auth: AuthService = Depends(get_auth_service)) -> RedirectResponse:
    try:
        url, verifier = auth.oauth_url(provider)
    except AuthError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    redirect = RedirectResponse(url, status_code=302)
    attach_verifier_cookie(redirect, verifier, "oauth")
    return redirect


@router.get("/callback")
def auth_callback(
    request: Request,
    response: Response,
    code: Optional[str] = None,
    token_hash: Optional[str] = None,
    otp_type: Optional[str] = Query(default=None, alias="type"),
    next_path: Optional[str] = Query(default=None, alias="next"),
    error_description: Optional[str] = None,
    store: SessionStore = Depends(get_session_store),
    auth: AuthService = Depends(get_auth_service),
) -> dict:
    if error_description:
        raise HTTPException(status_code=400, detail=error_description)

    verifier_payload = read_verifier_cookie(request) or {}
    purpose = verifier_payload.get("purpose")
    try:
        if code:
            if not verifier_payload.get("verifier"):
                raise HTTPException(status_code=400, detail="Login link expired or was opened in another browser")
            session = auth.exchange_code(code, verifier_payload["verifier"])
        elif token_hash and otp_type:
            session = auth.verify_token_hash(token_hash, otp_type)
            if otp_type == "recovery":
                purpose = "recovery"
        else:
            raise HTTPException(status_code=400, detail="Missing login code")
    except AuthError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc

    clear_verifier_cookie(response)
    recovery = purpose == "recovery"
    event = AuthEvent.PASSWORD_RECOVERY if recovery else AuthEvent.SIGNED_IN
    payload = _start_session(response, store, session, event)
    payload["redirect_path"] = _safe_next(next_path, "/reset-password" if recovery else "/")
    return payload


@router.post("/reset-password")
def reset_password(
    payload: NewPasswordRequest,
    response: Response,
    context: AuthContext = Depends(require_session),
    store: SessionStore = Depends(get_session_store),
    auth: AuthService = Depends(get_auth_service),
) -> dict:
    try:
        account = auth.update_password(context.access_token, context.refresh_token or "", payload.password)
    except AuthError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    store.announce(AuthEvent.USER_UPDATED, account)

    # the new password takes effect on the next sign-in
    try:
        auth.sign_out(context.access_token, context.refresh_token or "")
    except AuthError as exc:
        logger.warning("sign_out_after_reset_failed user_id=%s reason=%s", account.id, exc)
    store.forget(context.access_token)
    clear_session_cookies(response)
    return {"status": "password_updated", "message": PASSWORD_UPDATED_MESSAGE}


@router.get("/me")
def get_current_account(context: AuthContext = Depends(require_session)) -> dict:
    return {"account": serialize_account(context.account)}


@router.post("/logout")
def logout(
    response: Response,
    context: Optional[AuthContext] = Depends(optional_auth),
    store: SessionStore = Depends(get_session_store),
    auth: AuthService = Depends(get_auth_service),
) -> dict:
    if context is not None:
        try:
            auth.sign_out(context.access_token, context.refresh_token or "")
        except AuthError as exc:
            logger.warning("sign_out_failed user_id=%s reason=%s", context.account.id, exc)
        store.forget(context.access_token)
    clear_session_cookies(response)
    return {"status": "logged_out"}
