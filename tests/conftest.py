"""Pytest configuration and fixtures."""

from __future__ import annotations

import os

from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from authsync.backend import IdentityBackend
from authsync.config import clear_settings
from authsync.types import AgentResult, AgentResultType, Identity, Session, User


if TYPE_CHECKING:
    from collections.abc import Generator


@pytest.fixture(autouse=True)
def isolated_settings(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Any
) -> Generator[None, None, None]:
    """Keep tests away from real config files and AUTHSYNC_* variables."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.setenv("APPDATA", str(tmp_path))
    for name in list(os.environ):
        if name.startswith("AUTHSYNC"):
            monkeypatch.delenv(name, raising=False)
    clear_settings()
    yield
    clear_settings()


@pytest.fixture()
def user() -> User:
    """A backend user."""
    return User(id="u1", email="a@x.com", name="Ada Lovelace", prefs={})


@pytest.fixture()
def password_session() -> Session:
    """A session created from email/password."""
    return Session(id="s-pw", user_id="u1", provider="email")


@pytest.fixture()
def delegated_session() -> Session:
    """A session created by a delegated login; its token field is empty."""
    return Session(id="s-oauth", user_id="u1", provider="oauth2", provider_access_token="")


@pytest.fixture()
def google_identity() -> Identity:
    """A linked Google identity with a token valid for an hour."""
    from datetime import UTC, datetime, timedelta

    expiry = (datetime.now(UTC) + timedelta(hours=1)).isoformat()
    return Identity(
        id="i1",
        provider="google",
        provider_uid="g-123",
        provider_email="a@x.com",
        access_token="ya29.token",
        access_token_expiry=expiry,
        user_id="u1",
    )


@pytest.fixture()
def backend() -> MagicMock:
    """A mock identity backend with every call returning a signed-out default."""
    mock = MagicMock(spec=IdentityBackend)
    mock.get_current_user.return_value = None
    mock.get_current_session.return_value = None
    mock.list_identities.return_value = []
    mock.request_delegated_login_url.return_value = "https://idp.example/login"
    return mock


@pytest.fixture()
def agent() -> MagicMock:
    """A mock external agent without its own redirect endpoint."""
    mock = MagicMock()
    mock.start.return_value = None
    mock.open_auth_session = AsyncMock(return_value=AgentResult(AgentResultType.CANCEL))
    return mock
