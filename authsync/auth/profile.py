"""Third-party profile enrichment.

Defines the ProfileProvider ABC, a Google userinfo implementation, and
ProfileEnricher, which overlays provider fields onto the base profile
without ever failing authentication.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import dataclasses
import logging

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

import httpx

from ..exceptions import ProfileFetchFailed


if TYPE_CHECKING:
    from ..config import AuthSyncSettings
    from ..types import Profile


logger = logging.getLogger("authsync.auth")

GOOGLE_USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"


class ProfileProvider(ABC):
    """Source of external profile data for a provider access token."""

    @abstractmethod
    async def fetch_profile(self, access_token: str) -> dict[str, Any]:
        """Fetch ``{name?, picture?, email?}`` for ``access_token``.

        Raises
        ------
        ProfileFetchFailed
            If the profile cannot be fetched or decoded.
        """

    async def close(self) -> None:  # noqa: B027
        """Release network resources."""


class GoogleProfileProvider(ProfileProvider):
    """Reads the Google OAuth2 userinfo endpoint.

    Parameters
    ----------
    userinfo_url : str
        Profile endpoint (defaults to Google's v2 userinfo).
    timeout : float
        Request timeout in seconds.
    transport : httpx.AsyncBaseTransport, optional
        Custom transport (used by tests).
    """

    def __init__(
        self,
        userinfo_url: str = GOOGLE_USERINFO_URL,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the Google profile provider."""
        self.userinfo_url = userinfo_url
        self.timeout = timeout
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    @classmethod
    def from_settings(cls, settings: AuthSyncSettings) -> GoogleProfileProvider:
        """Build a provider from ``AuthSyncSettings``."""
        return cls(
            userinfo_url=settings.oauth.profile_url,
            timeout=settings.oauth.profile_timeout_seconds,
        )

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the shared HTTP client."""
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)
        return self._http_client

    async def close(self) -> None:
        """Close the shared HTTP client."""
        if self._http_client is not None and not self._http_client.is_closed:
            await self._http_client.aclose()
            self._http_client = None

    async def fetch_profile(self, access_token: str) -> dict[str, Any]:
        """Fetch the user's Google profile."""
        client = await self._get_client()
        try:
            resp = await client.get(
                self.userinfo_url,
                headers={"Authorization": f"Bearer {access_token}"},
            )
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            msg = f"Profile request failed: {exc}"
            raise ProfileFetchFailed(msg, provider="google") from exc

        if not isinstance(data, dict):
            msg = "Profile response is not a JSON object"
            raise ProfileFetchFailed(msg, provider="google")
        return data


def _non_empty(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


class ProfileEnricher:
    """Overlays provider profile fields onto a base profile.

    Enrichment is best-effort: any failure yields the base profile.

    Parameters
    ----------
    provider : ProfileProvider
        Where external profile data comes from.
    """

    def __init__(self, provider: ProfileProvider) -> None:
        self.provider = provider

    async def enrich(self, base: Profile, access_token: str | None) -> Profile:
        """Return ``base`` with provider ``name``/``avatar`` applied.

        Parameters
        ----------
        base : Profile
            Profile built from the backend user.
        access_token : str or None
            Provider access token. Absent or empty tokens skip enrichment.

        Returns
        -------
        Profile
            The enriched profile, or ``base`` itself when there is nothing
            to apply or the fetch failed.
        """
        if not access_token:
            return base

        try:
            data = await self.provider.fetch_profile(access_token)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Profile enrichment skipped: %s", exc)
            return base

        changes: dict[str, str] = {}
        name = _non_empty(data.get("name"))
        if name is not None:
            changes["name"] = name
        avatar = _non_empty(data.get("picture"))
        if avatar is not None:
            changes["avatar"] = avatar

        if not changes:
            return base
        return dataclasses.replace(base, **changes)
