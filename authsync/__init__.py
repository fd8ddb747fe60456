"""authsync - authentication state coordination for password and delegated login.

Reconciles the backend session, the user's linked provider identities and
a third-party profile endpoint into one ``AuthState`` owned by
``AuthCoordinator``.
"""

from __future__ import annotations

from .backend import AppwriteBackend, IdentityBackend
from .config import (
    AuthSyncSettings,
    BackendSettings,
    LogSettings,
    OAuthSettings,
    clear_settings,
    get_settings,
)
from .coordinator import AuthCoordinator
from .exceptions import (
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
from .types import (
    AgentResult,
    AgentResultType,
    AuthState,
    AuthStatus,
    CallbackCredentials,
    FlowState,
    Identity,
    Profile,
    Session,
    User,
)


__version__ = "0.1.0"

__all__ = [
    "AgentResult",
    "AgentResultType",
    "AppwriteBackend",
    "AuthCoordinator",
    "AuthState",
    "AuthStatus",
    "AuthSyncException",
    "AuthSyncSettings",
    "AuthenticationError",
    "BackendError",
    "BackendSettings",
    "CallbackCredentials",
    "CallbackError",
    "ConfigurationError",
    "ExternalFailure",
    "FlowState",
    "Identity",
    "IdentityBackend",
    "InvalidCallbackFormat",
    "LogSettings",
    "MissingCredentials",
    "OAuthSettings",
    "OperationInProgress",
    "Profile",
    "ProfileFetchFailed",
    "Session",
    "SessionCreationFailed",
    "SessionEstablishedButUserMissing",
    "TokenRefreshFailed",
    "User",
    "UserCancelled",
    "__version__",
    "clear_settings",
    "get_settings",
]
