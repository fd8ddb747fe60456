"""authsync exception hierarchy.

All authsync-specific exceptions inherit from AuthSyncException, enabling
catch-all handling while supporting specific error types.
"""

from __future__ import annotations

from typing import Any


class AuthSyncException(Exception):
    """Base exception for all authsync errors."""

    def __init__(self, message: str, **context: Any) -> None:
        """Initialize authsync exception.

        Parameters
        ----------
        message : str
            Human-readable error message.
        **context : Any
            Additional context (provider, flow_id, status_code, etc.).
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """Format exception with context."""
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message


class ConfigurationError(AuthSyncException):
    """Configuration is missing or inconsistent.

    Raised when a component is wired from settings that lack a
    required value (endpoint, project ID, redirect URL).
    """

    def __init__(self, message: str, setting: str | None = None, **context: Any) -> None:
        """Initialize configuration error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        setting : str, optional
            The setting that is missing or invalid.
        **context : Any
            Additional context.
        """
        super().__init__(message, setting=setting, **context)
        self.setting = setting


class AuthenticationError(AuthSyncException):
    """Base exception for all authentication failures.

    Raised when an authentication operation fails, including
    delegated login flows, session creation, or backend calls.
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        flow_id: str | None = None,
        **context: Any,
    ) -> None:
        """Initialize authentication error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        provider : str, optional
            The delegated-login provider name (e.g., "google").
        flow_id : str, optional
            The unique identifier of the login flow that failed.
        **context : Any
            Additional context.
        """
        super().__init__(message, provider=provider, flow_id=flow_id, **context)
        self.provider = provider
        self.flow_id = flow_id


class CallbackError(AuthenticationError):
    """The redirect callback could not be turned into credentials."""


class InvalidCallbackFormat(CallbackError):
    """The redirect callback is not a well-formed URL."""


class MissingCredentials(CallbackError):
    """The redirect callback lacks ``userId`` and/or ``secret``."""

    def __init__(
        self,
        message: str,
        missing: list[str] | None = None,
        **context: Any,
    ) -> None:
        """Initialize missing credentials error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        missing : list[str], optional
            Names of the query parameters that were absent or empty.
        **context : Any
            Additional context.
        """
        super().__init__(message, missing=missing or [], **context)
        self.missing = missing or []


class UserCancelled(AuthenticationError):
    """The user dismissed the external login agent.

    Kept distinct from other failures so callers can skip the
    error dialog.
    """


class ExternalFailure(AuthenticationError):
    """The provider or the external agent reported a failure."""


class SessionCreationFailed(AuthenticationError):
    """The backend rejected the callback credential exchange."""


class SessionEstablishedButUserMissing(AuthenticationError):
    """A session was created but the backend has no current user for it.

    Indicates backend inconsistency rather than a user error.
    """


class ProfileFetchFailed(AuthenticationError):
    """The third-party profile endpoint could not be read."""


class TokenRefreshFailed(AuthenticationError):
    """Refreshing the provider tokens behind the session failed."""


class BackendError(AuthenticationError):
    """The identity backend answered with an error.

    Raised for non-2xx responses and transport failures of the
    remote identity/session store.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        error_type: str | None = None,
        **context: Any,
    ) -> None:
        """Initialize backend error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        status_code : int, optional
            HTTP status code, if a response was received.
        error_type : str, optional
            The backend's machine-readable error type.
        **context : Any
            Additional context.
        """
        super().__init__(message, status_code=status_code, error_type=error_type, **context)
        self.status_code = status_code
        self.error_type = error_type


class OperationInProgress(AuthenticationError):
    """Another coordinator operation is still in flight."""

    def __init__(self, message: str, operation: str | None = None, **context: Any) -> None:
        """Initialize in-progress error.

        Parameters
        ----------
        message : str
            Human-readable error message.
        operation : str, optional
            Name of the operation currently running.
        **context : Any
            Additional context.
        """
        super().__init__(message, operation=operation, **context)
        self.operation = operation
