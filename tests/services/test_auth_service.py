from __future__ import annotations

from types import SimpleNamespace

import pytest
from supabase import AuthError as HostedAuthError

from docucollect.services.auth import (
    SIGN_IN_INSTEAD_MESSAGE,
    UNAUTHORIZED_EMAIL_MESSAGE,
    AlreadyRegisteredError,
    AuthError,
    AuthService,
    VerifierStorage,
    callback_url,
)


class HostedFailure(HostedAuthError):
    def __init__(self, message: str) -> None:
        Exception.__init__(self, message)
        self.message = message


def _user(user_id: str = "user-1", confirmed: bool = True, identities=None):
    return SimpleNamespace(
        id=user_id,
        email="owner@example.com",
        email_confirmed_at="2026-01-01T00:00:00Z" if confirmed else None,
        identities=identities,
    )


def _response(user, session=None):
    return SimpleNamespace(user=user, session=session)


def _hosted_session(user):
    return SimpleNamespace(access_token="access-1", refresh_token="refresh-1", expires_in=3600, user=user)


class FakeAuthApi:
    def __init__(self, **results) -> None:
        self.results = results
        self.calls: list[tuple[str, tuple]] = []

    def _answer(self, name: str, *args):
        self.calls.append((name, args))
        result = self.results.get(name)
        if isinstance(result, Exception):
            raise result
        return result

    def sign_up(self, credentials):
        return self._answer("sign_up", credentials)

    def sign_in_with_password(self, credentials):
        return self._answer("sign_in_with_password", credentials)

    def get_user(self, token):
        return self._answer("get_user", token)

    def refresh_session(self, token):
        return self._answer("refresh_session", token)


def _service(**results) -> tuple[AuthService, FakeAuthApi]:
    api = FakeAuthApi(**results)
    return AuthService(client=SimpleNamespace(auth=api)), api


def test_sign_up_with_empty_identities_means_already_registered():
    service, _ = _service(sign_up=_response(_user(identities=[])))
    with pytest.raises(AlreadyRegisteredError) as excinfo:
        service.sign_up("owner@example.com", "hunter22")
    assert str(excinfo.value) == SIGN_IN_INSTEAD_MESSAGE


def test_sign_up_already_registered_error_maps_to_sign_in_instead():
    service, _ = _service(sign_up=HostedFailure("User already registered"))
    with pytest.raises(AlreadyRegisteredError):
        service.sign_up("owner@example.com", "hunter22")


def test_sign_up_disallowed_address_gets_unauthorized_message():
    service, _ = _service(sign_up=HostedFailure("Email address owner@corp.test cannot be used"))
    with pytest.raises(AuthError) as excinfo:
        service.sign_up("owner@corp.test", "hunter22")
    assert str(excinfo.value) == UNAUTHORIZED_EMAIL_MESSAGE
    assert not isinstance(excinfo.value, AlreadyRegisteredError)


def test_sign_up_without_session_means_confirmation_pending():
    service, api = _service(sign_up=_response(_user(confirmed=False, identities=[SimpleNamespace(id="i-1")])))
    assert service.sign_up(" Owner@Example.com ", "hunter22") is None
    credentials = api.calls[0][1][0]
    assert credentials["email"] == "owner@example.com"
    assert credentials["options"]["email_redirect_to"] == callback_url()


def test_sign_up_with_session_returns_signed_in_session():
    user = _user(identities=[SimpleNamespace(id="i-1")])
    service, _ = _service(sign_up=_response(user, _hosted_session(user)))
    session = service.sign_up("owner@example.com", "hunter22")
    assert session is not None
    assert session.access_token == "access-1"
    assert session.account.email_confirmed is True


def test_sign_in_requires_email_and_password():
    service, api = _service()
    with pytest.raises(AuthError, match="Email required"):
        service.sign_in_with_password("  ", "hunter22")
    with pytest.raises(AuthError, match="Password required"):
        service.sign_in_with_password("owner@example.com", "")
    assert api.calls == []


def test_sign_in_failure_surfaces_hosted_message():
    service, _ = _service(sign_in_with_password=HostedFailure("Invalid login credentials"))
    with pytest.raises(AuthError, match="Invalid login credentials"):
        service.sign_in_with_password("owner@example.com", "wrong-password")


def test_account_for_token_returns_none_when_token_rejected():
    service, _ = _service(get_user=HostedFailure("JWT expired"))
    assert service.account_for_token("stale") is None


def test_account_for_token_maps_unconfirmed_user():
    service, _ = _service(get_user=_response(_user(user_id="user-7", confirmed=False)))
    account = service.account_for_token("token")
    assert account is not None
    assert account.id == "user-7"
    assert account.email_confirmed is False


def test_refresh_failure_raises_auth_error():
    service, _ = _service(refresh_session=HostedFailure("Invalid Refresh Token"))
    with pytest.raises(AuthError):
        service.refresh("refresh-1")


def test_verify_token_hash_rejects_unknown_type():
    service, _ = _service()
    with pytest.raises(AuthError, match="Unsupported verification type"):
        service.verify_token_hash("hash", "sms")


def test_verifier_storage_exposes_code_verifier():
    storage = VerifierStorage()
    assert storage.code_verifier is None
    storage.set_item("sb-docucollect-auth-token-code-verifier", "verifier-1")
    assert storage.code_verifier == "verifier-1"
    storage.remove_item("sb-docucollect-auth-token-code-verifier")
    assert storage.get_item("sb-docucollect-auth-token-code-verifier") is None


def test_callback_url_carries_next_path():
    assert callback_url("/reset-password").endswith("/auth/callback?next=%2Freset-password")
