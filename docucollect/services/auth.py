from __future__ import annotations

import enum
import logging
from dataclasses import dataclass
from typing import Any, Optional
from urllib.parse import urlencode

from supabase import AuthError as HostedAuthError
from supabase import Client, ClientOptions, create_client

from ..config import settings
from .session_store import Account

logger = logging.getLogger(__name__)

MIN_PASSWORD_LENGTH = 6

SIGN_IN_INSTEAD_MESSAGE = "An account with this email already exists. Please sign in instead."
UNAUTHORIZED_EMAIL_MESSAGE = (
    "This email address is not authorized. Please use an approved email or contact the administrator."
)
CONFIRMATION_SENT_MESSAGE = "Check your email for the confirmation link!"
OTP_TYPES = frozenset({"signup", "invite", "magiclink", "recovery", "email_change", "email"})


class AuthError(Exception):
    pass


class AlreadyRegisteredError(AuthError):
    pass


class AuthMode(str, enum.Enum):
    SIGN_IN = "sign_in"
    SIGN_UP = "sign_up"
    FORGOT_PASSWORD = "forgot_password"


class OAuthProvider(str, enum.Enum):
    GITHUB = "github"
    GOOGLE = "google"


@dataclass
class AuthSession:
    access_token: str
    refresh_token: str
    expires_in: int
    account: Account


class VerifierStorage:
    """Client storage that keeps the PKCE code verifier readable by the caller."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._items: dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._items.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._items[key] = value

    def remove_item(self, key: str) -> None:
        self._items.pop(key, None)

    @property
    def code_verifier(self) -> Optional[str]:
        for key, value in self._items.items():
            if key.endswith("-code-verifier"):
                return value
        return None


def create_auth_client(storage: VerifierStorage | None = None) -> Client:
    options = ClientOptions(
        auto_refresh_token=False,
        persist_session=False,
        flow_type="pkce",
        storage=storage or VerifierStorage(),
    )
    return create_client(settings.supabase_url, settings.supabase_anon_key, options=options)


def callback_url(next_path: str | None = None) -> str:
    url = f"{settings.api_url}/auth/callback"
    if next_path:
        url = f"{url}?{urlencode({'next': next_path})}"
    return url


def account_from_user(user: Any) -> Account:
    return Account(
        id=str(user.id),
        email=getattr(user, "email", None),
        email_confirmed=bool(getattr(user, "email_confirmed_at", None)),
    )


def _message(exc: Exception) -> str:
    return getattr(exc, "message", None) or str(exc) or exc.__class__.__name__


class AuthService:
    """Pass-through to the hosted auth service.

    A fresh client is created per service instance so tokens of one request
    never leak into another.
    """

    def __init__(self, client: Client | None = None, storage: VerifierStorage | None = None) -> None:
        self.storage = storage or VerifierStorage()
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = create_auth_client(self.storage)
        return self._client

    # --- Password flows --------------------------------------------------
    def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        normalized_email = self.normalize_email(email)
        if not password:
            raise AuthError("Password required")
        try:
            response = self.client.auth.sign_in_with_password({"email": normalized_email, "password": password})
        except HostedAuthError as exc:
            logger.info("sign_in_failed email=%s reason=%s", normalized_email, _message(exc))
            raise AuthError(_message(exc)) from exc

        session = self._to_session(response)
        logger.info("user_signed_in user_id=%s", session.account.id)
        return session

    def sign_up(self, email: str, password: str, redirect_to: str | None = None) -> Optional[AuthSession]:
        """Register an account; returns a session only when no confirmation is required."""
        normalized_email = self.normalize_email(email)
        self.check_password(password)
        try:
            response = self.client.auth.sign_up(
                {
                    "email": normalized_email,
                    "password": password,
                    "options": {"email_redirect_to": redirect_to or callback_url()},
                }
            )
        except HostedAuthError as exc:
            message = _message(exc)
            if "already registered" in message.lower():
                raise AlreadyRegisteredError(SIGN_IN_INSTEAD_MESSAGE) from exc
            if "cannot be used" in message:
                raise AuthError(UNAUTHORIZED_EMAIL_MESSAGE) from exc
            raise AuthError(message) from exc

        user = response.user
        # an existing, confirmed address comes back as a user without identities
        if user is not None and user.identities is not None and len(user.identities) == 0:
            logger.info("sign_up_existing_email email=%s", normalized_email)
            raise AlreadyRegisteredError(SIGN_IN_INSTEAD_MESSAGE)

        if response.session is None:
            logger.info("sign_up_confirmation_sent email=%s", normalized_email)
            return None
        return self._to_session(response)

    def send_password_reset(self, email: str, redirect_to: str | None = None) -> Optional[str]:
        normalized_email = self.normalize_email(email)
        try:
            self.client.auth.reset_password_for_email(
                normalized_email, {"redirect_to": redirect_to or callback_url("/reset-password")}
            )
        except HostedAuthError as exc:
            raise AuthError(_message(exc)) from exc
        logger.info("password_reset_requested email=%s", normalized_email)
        return self.storage.code_verifier

    def update_password(self, access_token: str, refresh_token: str, password: str) -> Account:
        self.check_password(password)
        try:
            self.client.auth.set_session(access_token, refresh_token)
            response = self.client.auth.update_user({"password": password})
        except HostedAuthError as exc:
            raise AuthError(_message(exc)) from exc
        account = account_from_user(response.user)
        logger.info("password_updated user_id=%s", account.id)
        return account

    # --- Passwordless flows ----------------------------------------------
    def send_magic_link(self, email: str, redirect_to: str | None = None) -> Optional[str]:
        normalized_email = self.normalize_email(email)
        try:
            self.client.auth.sign_in_with_otp(
                {"email": normalized_email, "options": {"email_redirect_to": redirect_to or callback_url()}}
            )
        except HostedAuthError as exc:
            raise AuthError(_message(exc)) from exc
        logger.info("magic_link_requested email=%s", normalized_email)
        return self.storage.code_verifier

    def oauth_url(self, provider: OAuthProvider, redirect_to: str | None = None) -> tuple[str, Optional[str]]:
        try:
            response = self.client.auth.sign_in_with_oauth(
                {"provider": provider.value, "options": {"redirect_to": redirect_to or callback_url()}}
            )
        except HostedAuthError as exc:
            raise AuthError(_message(exc)) from exc
        return response.url, self.storage.code_verifier

    def exchange_code(self, code: str, code_verifier: str) -> AuthSession:
        try:
            response = self.client.auth.exchange_code_for_session(
                {"auth_code": code, "code_verifier": code_verifier.split("/", 1)[0], "redirect_to": callback_url()}
            )
        except HostedAuthError as exc:
            raise AuthError(_message(exc)) from exc
        return self._to_session(response)

    def verify_token_hash(self, token_hash: str, otp_type: str) -> AuthSession:
        if otp_type not in OTP_TYPES:
            raise AuthError("Unsupported verification type")
        try:
            response = self.client.auth.verify_otp({"token_hash": token_hash, "type": otp_type})
        except HostedAuthError as exc:
            raise AuthError(_message(exc)) from exc
        return self._to_session(response)

    # --- Session flow ----------------------------------------------------
    def account_for_token(self, access_token: str) -> Optional[Account]:
        if not access_token:
            return None
        try:
            response = self.client.auth.get_user(access_token)
        except HostedAuthError as exc:
            logger.info("session_lookup_failed reason=%s", _message(exc))
            return None
        if response is None or response.user is None:
            return None
        return account_from_user(response.user)

    def refresh(self, refresh_token: str) -> AuthSession:
        try:
            response = self.client.auth.refresh_session(refresh_token)
        except HostedAuthError as exc:
            raise AuthError(_message(exc)) from exc
        return self._to_session(response)

    def sign_out(self, access_token: str, refresh_token: str) -> None:
        try:
            self.client.auth.set_session(access_token, refresh_token)
            self.client.auth.sign_out()
        except HostedAuthError as exc:
            raise AuthError(_message(exc)) from exc

    # --- Helpers ---------------------------------------------------------
    @staticmethod
    def normalize_email(email: str) -> str:
        normalized_email = (email or "").strip().lower()
        if not normalized_email:
            raise AuthError("Email required")
        return normalized_email

    @staticmethod
    def check_password(password: str) -> None:
        if not password or len(password) < MIN_PASSWORD_LENGTH:
            raise AuthError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")

    @staticmethod
    def _to_session(response: Any) -> AuthSession:
        session = getattr(response, "session", None)
        if session is None:
            raise AuthError("No session returned")
        user = getattr(response, "user", None) or session.user
        return AuthSession(
            access_token=session.access_token,
            refresh_token=session.refresh_token,
            expires_in=int(session.expires_in or 3600),
            account=account_from_user(user),
        )
