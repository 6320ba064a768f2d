from __future__ import annotations

import os
import pathlib
import secrets
import sys
import tempfile
import uuid
from typing import Iterator

import pytest

_TEST_DB_DIR = tempfile.mkdtemp(prefix="docucollect-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_TEST_DB_DIR}/docucollect.db")
os.environ["APP_ENV"] = "test"
os.environ["SUPABASE_URL"] = "https://docucollect-test.supabase.co"
os.environ["SUPABASE_ANON_KEY"] = "test-anon-key"
os.environ["AWS_ACCESS_KEY_ID"] = "testing"
os.environ["AWS_SECRET_ACCESS_KEY"] = "testing"
os.environ["AWS_DEFAULT_REGION"] = "us-east-1"
os.environ.pop("STORAGE_ENDPOINT_URL", None)
os.environ.pop("STORAGE_PUBLIC_URL", None)

ROOT_DIR = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT_DIR) not in sys.path:
    sys.path.insert(0, str(ROOT_DIR))

import boto3
from fastapi.testclient import TestClient
from moto import mock_aws

from docucollect.config import settings
from docucollect.db.session import SessionLocal, engine
from docucollect.main import app
from docucollect.models import Base
from docucollect.services.session_store import Account, session_store


def sign_in_as(client: TestClient, account: Account) -> str:
    """Register a cached session for ``account`` and attach its cookie to the client."""
    token = secrets.token_urlsafe(32)
    session_store.remember(token, account, ttl_seconds=3600)
    client.cookies.set(settings.cookie_name, token)
    return token


@pytest.fixture(scope="session", autouse=True)
def create_schema() -> Iterator[None]:
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="session")
def client() -> Iterator[TestClient]:
    """Provide a FastAPI TestClient instance."""
    with TestClient(app) as _client:
        yield _client


@pytest.fixture()
def auth_context(client: TestClient) -> Iterator[dict[str, str]]:
    """Sign in a confirmed account and attach the session cookie to the client."""
    account = Account(id=str(uuid.uuid4()), email="owner@example.com", email_confirmed=True)
    token = sign_in_as(client, account)
    try:
        yield {"user_id": account.id, "email": account.email, "token": token}
    finally:
        client.cookies.clear()


@pytest.fixture()
def other_account() -> Account:
    return Account(id=str(uuid.uuid4()), email="intruder@example.com", email_confirmed=True)


@pytest.fixture()
def mock_storage() -> Iterator:
    """Fake object storage with both buckets created."""
    with mock_aws():
        s3 = boto3.client("s3", region_name=settings.storage.region)
        s3.create_bucket(Bucket=settings.storage.documents_bucket)
        s3.create_bucket(Bucket=settings.storage.avatars_bucket)
        yield s3


@pytest.fixture(autouse=True)
def cleanup_database() -> Iterator[None]:
    """Empty every table and the session cache after each test."""
    yield
    session_store.clear()
    with SessionLocal() as session:
        for table in reversed(Base.metadata.sorted_tables):
            session.execute(table.delete())
        session.commit()


@pytest.fixture()
def sign_in(client: TestClient) -> Iterator:
    """Return a helper that switches the client to another account's session."""

    def _sign_in(account: Account) -> str:
        return sign_in_as(client, account)

    try:
        yield _sign_in
    finally:
        client.cookies.clear()
