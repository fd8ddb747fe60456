"""Tests for session establishment."""

from __future__ import annotations

import asyncio

from unittest.mock import MagicMock

import pytest

from authsync.auth.session import SessionEstablisher
from authsync.exceptions import BackendError, SessionCreationFailed
from authsync.types import CallbackCredentials, Session


def _run(coro):
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


CREDS = CallbackCredentials(user_id="U", secret="S")


class TestSessionEstablisher:
    """Tests for SessionEstablisher.establish."""

    def test_success(self, backend: MagicMock, delegated_session: Session) -> None:
        """The backend session is returned."""
        backend.create_session_from_credentials.return_value = delegated_session
        session = _run(SessionEstablisher(backend, "google").establish(CREDS))
        assert session == delegated_session
        backend.create_session_from_credentials.assert_awaited_once_with("U", "S")

    def test_rejection(self, backend: MagicMock) -> None:
        """Backend rejection becomes SessionCreationFailed."""
        backend.create_session_from_credentials.side_effect = BackendError(
            "Invalid token", status_code=401, error_type="user_invalid_token"
        )
        with pytest.raises(SessionCreationFailed) as exc_info:
            _run(SessionEstablisher(backend, "google").establish(CREDS))
        assert isinstance(exc_info.value.__cause__, BackendError)
        assert exc_info.value.provider == "google"
        assert "S" not in exc_info.value.context.values()

    def test_not_retried(self, backend: MagicMock) -> None:
        """A failed exchange is attempted exactly once."""
        backend.create_session_from_credentials.side_effect = OSError("network down")
        with pytest.raises(SessionCreationFailed):
            _run(SessionEstablisher(backend).establish(CREDS))
        assert backend.create_session_from_credentials.await_count == 1
