"""Type definitions for authsync.

Backend records (User, Session, Identity), the derived Profile and the
coordinator-owned AuthState, plus the enums describing flow progress.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


# Session provider tags issued for first-party (non-delegated) logins.
FIRST_PARTY_PROVIDERS = frozenset({"email", "password", "anonymous", "magic-url", "phone"})


@dataclass(frozen=True)
class User:
    """Backend account record.

    Attributes
    ----------
    id : str
        Backend user identifier.
    email : str
        Account email (may be empty).
    name : str
        Display name (may be empty).
    prefs : dict[str, Any]
        Free-form preference map.
    """

    id: str
    email: str = ""
    name: str = ""
    prefs: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> User:
        """Build a user from the backend's JSON representation."""
        return cls(
            id=str(data.get("$id") or data.get("id") or ""),
            email=data.get("email") or "",
            name=data.get("name") or "",
            prefs=dict(data.get("prefs") or {}),
        )


@dataclass(frozen=True)
class Session:
    """Backend-issued proof of authentication for this device.

    ``provider_access_token`` is reliably empty for delegated logins.
    Provider tokens are read from ``Identity`` records only.

    Attributes
    ----------
    id : str
        Session identifier.
    user_id : str
        Owner of the session.
    provider : str
        Provider tag (``"email"`` for password logins, ``"oauth2"`` or a
        provider name for delegated ones).
    provider_uid : str
        Account id at the provider, if any.
    provider_access_token : str
        Token field reported on the session; not used for token retrieval.
    provider_access_token_expiry : str or None
        Expiry reported alongside ``provider_access_token``.
    expire : str or None
        Session expiry timestamp.
    """

    id: str
    user_id: str = ""
    provider: str = ""
    provider_uid: str = ""
    provider_access_token: str = ""
    provider_access_token_expiry: str | None = None
    expire: str | None = None

    @property
    def is_delegated(self) -> bool:
        """Whether the session came from a third-party (delegated) login."""
        return bool(self.provider) and self.provider.lower() not in FIRST_PARTY_PROVIDERS

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Session:
        """Build a session from the backend's JSON representation."""
        return cls(
            id=str(data.get("$id") or data.get("id") or ""),
            user_id=data.get("userId") or "",
            provider=data.get("provider") or "",
            provider_uid=data.get("providerUid") or "",
            provider_access_token=data.get("providerAccessToken") or "",
            provider_access_token_expiry=data.get("providerAccessTokenExpiry") or None,
            expire=data.get("expire") or None,
        )


@dataclass(frozen=True)
class Identity:
    """One linked external-provider account of the current user.

    Attributes
    ----------
    id : str
        Identity identifier.
    provider : str
        Provider name as stored by the backend (may be a compound tag
        such as ``"google-oauth2"``).
    provider_uid : str
        External account id.
    provider_email : str
        Email known to the provider.
    access_token : str
        Provider access token; may be empty.
    access_token_expiry : str or None
        ISO-8601 expiry of ``access_token``; may be absent.
    user_id : str
        Owner of the identity.
    """

    id: str
    provider: str
    provider_uid: str = ""
    provider_email: str = ""
    access_token: str = ""
    access_token_expiry: str | None = None
    user_id: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Identity:
        """Build an identity from the backend's JSON representation."""
        return cls(
            id=str(data.get("$id") or data.get("id") or ""),
            provider=data.get("provider") or "",
            provider_uid=data.get("providerUid") or "",
            provider_email=data.get("providerEmail") or "",
            access_token=data.get("providerAccessToken") or "",
            access_token_expiry=data.get("providerAccessTokenExpiry") or None,
            user_id=data.get("userId") or "",
        )


@dataclass(frozen=True)
class Profile:
    """UI-facing profile derived from a User and, optionally, provider data."""

    name: str
    email: str
    avatar: str | None = None

    @classmethod
    def from_user(cls, user: User) -> Profile:
        """Base profile for a user, before any provider enrichment."""
        return cls(name=user.name or "User", email=user.email or "", avatar=None)


class AuthStatus(str, Enum):
    """Coarse coordinator state derived from AuthState."""

    UNINITIALIZED = "uninitialized"
    CHECKING = "checking"
    AUTHENTICATED = "authenticated"
    UNAUTHENTICATED = "unauthenticated"


@dataclass(frozen=True)
class AuthState:
    """Coordinator-owned authentication state.

    ``profile`` is never set without ``user``. Callers should not read
    ``user``/``profile`` meaningfully while ``is_loading`` is true.
    """

    user: User | None = None
    profile: Profile | None = None
    is_loading: bool = False
    initialized: bool = False

    def __post_init__(self) -> None:
        if self.profile is not None and self.user is None:
            msg = "AuthState.profile requires AuthState.user"
            raise ValueError(msg)

    @property
    def status(self) -> AuthStatus:
        """Current coarse status."""
        if self.is_loading:
            return AuthStatus.CHECKING
        if not self.initialized:
            return AuthStatus.UNINITIALIZED
        if self.user is not None:
            return AuthStatus.AUTHENTICATED
        return AuthStatus.UNAUTHENTICATED


@dataclass(frozen=True)
class CallbackCredentials:
    """Credentials carried by a delegated-login redirect."""

    user_id: str
    secret: str

    def __repr__(self) -> str:
        return f"CallbackCredentials(user_id={self.user_id!r}, secret='***')"


class AgentResultType(str, Enum):
    """Terminal outcome reported by an external login agent."""

    SUCCESS = "success"
    CANCEL = "cancel"
    FAILURE = "failure"


@dataclass(frozen=True)
class AgentResult:
    """Result of an external browsing session.

    Attributes
    ----------
    type : AgentResultType
        How the session ended.
    url : str or None
        The redirect URL the agent landed on (success only).
    error : str or None
        Failure description reported by the agent or provider.
    """

    type: AgentResultType
    url: str | None = None
    error: str | None = None


class FlowState(str, Enum):
    """State of one delegated-login flow attempt."""

    IDLE = "idle"
    REQUESTING_LOGIN_URL = "requesting_login_url"
    AWAITING_EXTERNAL_AGENT = "awaiting_external_agent"
    SUCCEEDED = "succeeded"
    CANCELLED = "cancelled"
    FAILED = "failed"
