"""Tests for authsync.exceptions module.

These tests verify the exception hierarchy, message formatting and
context storage. No mocks needed.
"""

from __future__ import annotations

import pytest

from authsync.exceptions import (
    AuthenticationError,
    AuthSyncException,
    BackendError,
    CallbackError,
    ConfigurationError,
    ExternalFailure,
    InvalidCallbackFormat,
    MissingCredentials,
    OperationInProgress,
    ProfileFetchFailed,
    SessionCreationFailed,
    SessionEstablishedButUserMissing,
    TokenRefreshFailed,
    UserCancelled,
)


class TestAuthSyncException:
    """Test base exception class behavior."""

    def test_message_only(self) -> None:
        """Exception with just a message stores it correctly."""
        exc = AuthSyncException("Something went wrong")
        assert exc.message == "Something went wrong"
        assert not exc.context
        assert str(exc) == "Something went wrong"

    def test_with_context(self) -> None:
        """Context appears in the string representation."""
        exc = AuthSyncException("Failed", provider="google", attempt=2)
        assert exc.context == {"provider": "google", "attempt": 2}
        assert str(exc) == "Failed (provider='google', attempt=2)"

    def test_args_preserved(self) -> None:
        """Standard exception args are preserved."""
        assert AuthSyncException("message").args == ("message",)


class TestHierarchy:
    """Test inheritance relationships."""

    @pytest.mark.parametrize(
        "exc_class",
        [
            CallbackError,
            InvalidCallbackFormat,
            MissingCredentials,
            UserCancelled,
            ExternalFailure,
            SessionCreationFailed,
            SessionEstablishedButUserMissing,
            ProfileFetchFailed,
            TokenRefreshFailed,
            BackendError,
            OperationInProgress,
        ],
    )
    def test_authentication_errors(self, exc_class: type[Exception]) -> None:
        """Every auth failure is an AuthenticationError."""
        exc = exc_class("failed")
        assert isinstance(exc, AuthenticationError)
        assert isinstance(exc, AuthSyncException)

    def test_callback_errors(self) -> None:
        """Callback parsing errors share a base."""
        assert issubclass(InvalidCallbackFormat, CallbackError)
        assert issubclass(MissingCredentials, CallbackError)

    def test_configuration_error_is_not_auth_error(self) -> None:
        """Configuration problems are kept apart from auth failures."""
        assert not issubclass(ConfigurationError, AuthenticationError)

    def test_cancel_caught_separately(self) -> None:
        """UserCancelled can be caught before the generic error."""
        with pytest.raises(UserCancelled):
            raise UserCancelled("dismissed", provider="google")


class TestContextAttributes:
    """Test attributes stored by specific exceptions."""

    def test_authentication_error(self) -> None:
        """Provider and flow ID are stored as attributes and context."""
        exc = ExternalFailure("denied", provider="google", flow_id="f1")
        assert exc.provider == "google"
        assert exc.flow_id == "f1"
        assert "flow_id='f1'" in str(exc)

    def test_configuration_error(self) -> None:
        """ConfigurationError records the setting."""
        exc = ConfigurationError("missing", setting="backend.project_id")
        assert exc.setting == "backend.project_id"
        assert exc.context["setting"] == "backend.project_id"

    def test_missing_credentials(self) -> None:
        """MissingCredentials lists the absent parameters."""
        exc = MissingCredentials("missing", missing=["secret"])
        assert exc.missing == ["secret"]
        assert MissingCredentials("missing").missing == []

    def test_backend_error(self) -> None:
        """BackendError records the status code and error type."""
        exc = BackendError("nope", status_code=401, error_type="user_unauthorized")
        assert exc.status_code == 401
        assert exc.error_type == "user_unauthorized"
        assert "status_code=401" in str(exc)

    def test_operation_in_progress(self) -> None:
        """OperationInProgress names the running operation."""
        exc = OperationInProgress("busy", operation="sign_in")
        assert exc.operation == "sign_in"
