"""Identity backend abstractions.

Defines the IdentityBackend ABC (the remote calls the coordinator relies
on) and AppwriteBackend, an httpx implementation against the Appwrite
REST API.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import logging

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any
from urllib.parse import urlencode

import httpx

from .exceptions import BackendError, ConfigurationError
from .log import redact_sensitive_data
from .types import Identity, Session, User


if TYPE_CHECKING:
    from .config import AuthSyncSettings


logger = logging.getLogger("authsync.backend")

_FALLBACK_COOKIES_HEADER = "X-Fallback-Cookies"
_RESPONSE_FORMAT = "1.6.0"


class IdentityBackend(ABC):
    """Remote identity/session store consumed by the coordinator.

    Implementations are stateless from the coordinator's point of view:
    every call goes to the backend, nothing is cached between calls.
    """

    @abstractmethod
    async def create_password_session(self, email: str, password: str) -> Session:
        """Create a session from email/password credentials."""

    @abstractmethod
    async def create_account(self, email: str, password: str, name: str) -> User:
        """Register a new account."""

    @abstractmethod
    async def get_current_user(self) -> User | None:
        """Return the user behind the current session, or None."""

    @abstractmethod
    async def get_current_session(self) -> Session | None:
        """Return the current session, or None when unauthenticated."""

    @abstractmethod
    async def list_identities(self) -> list[Identity]:
        """List the provider identities linked to the current user."""

    @abstractmethod
    async def refresh_session(self) -> Session:
        """Refresh the provider tokens underlying the current session."""

    @abstractmethod
    async def delete_session(self) -> None:
        """Delete the current session."""

    @abstractmethod
    async def request_delegated_login_url(
        self,
        provider: str,
        success_redirect_uri: str,
        failure_redirect_uri: str,
    ) -> str:
        """Return the URL that starts a delegated login with ``provider``."""

    @abstractmethod
    async def create_session_from_credentials(self, user_id: str, secret: str) -> Session:
        """Exchange redirect callback credentials for a session."""

    async def aclose(self) -> None:  # noqa: B027
        """Release network resources."""


class AppwriteBackend(IdentityBackend):
    """Appwrite REST API client for the account service.

    Session continuity relies on the cookie jar of the shared
    ``httpx.AsyncClient`` and, for non-browser clients, on the
    ``X-Fallback-Cookies`` header which is echoed back on each request.

    Parameters
    ----------
    endpoint : str
        API base URL including the version path (``https://host/v1``).
    project_id : str
        Appwrite project ID.
    platform_id : str
        Registered platform identifier (bundle ID / package name).
    scopes : list[str], optional
        Scopes requested for delegated logins.
    dev_key : str
        Optional development key.
    timeout : float
        Per-request timeout in seconds.
    transport : httpx.AsyncBaseTransport, optional
        Custom transport (used by tests).
    """

    def __init__(
        self,
        endpoint: str,
        project_id: str,
        platform_id: str = "",
        scopes: list[str] | None = None,
        dev_key: str = "",
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the Appwrite backend client."""
        if not endpoint:
            msg = "Backend endpoint is not configured"
            raise ConfigurationError(msg, setting="backend.endpoint")
        if not project_id:
            msg = "Backend project ID is not configured"
            raise ConfigurationError(msg, setting="backend.project_id")

        self.endpoint = endpoint.rstrip("/")
        self.project_id = project_id
        self.platform_id = platform_id
        self.scopes = scopes or []
        self.dev_key = dev_key
        self.timeout = timeout
        self._transport = transport
        self._fallback_cookies: str | None = None
        self._http_client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(
        cls,
        settings: AuthSyncSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> AppwriteBackend:
        """Build a backend client from ``AuthSyncSettings``."""
        return cls(
            endpoint=settings.backend.endpoint,
            project_id=settings.backend.project_id,
            platform_id=settings.backend.platform_id,
            scopes=list(settings.oauth.scopes),
            dev_key=settings.backend.dev_key,
            timeout=settings.backend.timeout_seconds,
            transport=transport,
        )

    def _headers(self) -> dict[str, str]:
        headers = {
            "X-Appwrite-Project": self.project_id,
            "X-Appwrite-Response-Format": _RESPONSE_FORMAT,
            "Content-Type": "application/json",
        }
        if self.platform_id:
            headers["Origin"] = f"appwrite-callback-{self.platform_id}"
        if self.dev_key:
            headers["X-Appwrite-Dev-Key"] = self.dev_key
        if self._fallback_cookies:
            headers[_FALLBACK_COOKIES_HEADER] = self._fallback_cookies
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the shared HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(
                base_url=self.endpoint,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._http_client

    async def aclose(self) -> None:
        """Close the shared HTTP client."""
        if self._http_client is not None and not self._http_client.is_closed:
            await self._http_client.aclose()
            self._http_client = None

    async def _request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Send a request and decode the JSON body.

        Raises
        ------
        BackendError
            On transport failures and non-2xx responses.
        """
        client = await self._get_client()
        logger.debug("%s %s %s", method, path, redact_sensitive_data(json))
        try:
            resp = await client.request(method, path, json=json, headers=self._headers())
        except httpx.HTTPError as exc:
            msg = f"Backend request failed: {exc}"
            raise BackendError(msg, method=method, path=path) from exc

        fallback = resp.headers.get(_FALLBACK_COOKIES_HEADER)
        if fallback:
            self._fallback_cookies = fallback

        if resp.is_error:
            message = resp.reason_phrase
            error_type = None
            try:
                body = resp.json()
            except ValueError:
                body = None
            if isinstance(body, dict):
                message = body.get("message") or message
                error_type = body.get("type")
            raise BackendError(
                message,
                status_code=resp.status_code,
                error_type=error_type,
                method=method,
                path=path,
            )

        if not resp.content:
            return {}
        try:
            data = resp.json()
        except ValueError as exc:
            msg = "Backend returned a non-JSON body"
            raise BackendError(msg, status_code=resp.status_code, path=path) from exc
        return data if isinstance(data, dict) else {}

    async def create_password_session(self, email: str, password: str) -> Session:
        """Create a session from email/password credentials."""
        data = await self._request(
            "POST",
            "/account/sessions/email",
            json={"email": email, "password": password},
        )
        return Session.from_dict(data)

    async def create_account(self, email: str, password: str, name: str) -> User:
        """Register a new account with a backend-generated ID."""
        data = await self._request(
            "POST",
            "/account",
            json={"userId": "unique()", "email": email, "password": password, "name": name},
        )
        return User.from_dict(data)

    async def get_current_user(self) -> User | None:
        """Return the current user, or None when there is no valid session."""
        try:
            data = await self._request("GET", "/account")
        except BackendError as exc:
            if exc.status_code == 401:
                return None
            raise
        return User.from_dict(data)

    async def get_current_session(self) -> Session | None:
        """Return the current session, or None when unauthenticated."""
        try:
            data = await self._request("GET", "/account/sessions/current")
        except BackendError as exc:
            if exc.status_code in (401, 404):
                return None
            raise
        return Session.from_dict(data)

    async def list_identities(self) -> list[Identity]:
        """List linked provider identities in backend order."""
        data = await self._request("GET", "/account/identities")
        return [Identity.from_dict(item) for item in data.get("identities") or []]

    async def refresh_session(self) -> Session:
        """Refresh the provider access tokens behind the current session."""
        data = await self._request("PATCH", "/account/sessions/current")
        return Session.from_dict(data)

    async def delete_session(self) -> None:
        """Delete the current session and forget its cookies."""
        try:
            await self._request("DELETE", "/account/sessions/current")
        finally:
            self._fallback_cookies = None
            if self._http_client is not None:
                self._http_client.cookies.clear()

    async def request_delegated_login_url(
        self,
        provider: str,
        success_redirect_uri: str,
        failure_redirect_uri: str,
    ) -> str:
        """Build the OAuth2 token-flow URL for ``provider``.

        The backend redirects to ``success_redirect_uri`` with ``userId`` and
        ``secret`` query parameters once the provider grants consent.
        """
        params: list[tuple[str, str]] = [
            ("project", self.project_id),
            ("success", success_redirect_uri),
            ("failure", failure_redirect_uri),
        ]
        params.extend(("scopes[]", scope) for scope in self.scopes)
        return f"{self.endpoint}/account/tokens/oauth2/{provider}?{urlencode(params)}"

    async def create_session_from_credentials(self, user_id: str, secret: str) -> Session:
        """Exchange a ``userId``/``secret`` pair for a session."""
        data = await self._request(
            "POST",
            "/account/sessions/token",
            json={"userId": user_id, "secret": secret},
        )
        return Session.from_dict(data)
