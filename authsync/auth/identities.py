"""Provider identity lookup.

Provider access tokens for delegated logins live on the user's linked
identities, never on the session. These helpers locate the identity for
a provider and read its token.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import logging

from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from collections.abc import Iterable

    from ..backend import IdentityBackend
    from ..types import Identity


logger = logging.getLogger("authsync.auth")


def find_provider_identity(
    identities: Iterable[Identity],
    provider_fragment: str,
) -> Identity | None:
    """Find the identity whose provider contains ``provider_fragment``.

    Matching is a case-insensitive substring test, so ``"google"`` matches
    both ``"google"`` and ``"google-oauth2"``. When several identities match,
    the first one in list order wins.

    Parameters
    ----------
    identities : iterable of Identity
        Identities as returned by the backend.
    provider_fragment : str
        Provider name or fragment to look for.

    Returns
    -------
    Identity or None
        The first matching identity, or None.
    """
    needle = provider_fragment.strip().lower()
    if not needle:
        return None
    for identity in identities:
        if needle in identity.provider.lower():
            return identity
    return None


class IdentityTokenResolver:
    """Resolves the active provider identity from the backend.

    Stateless: every call lists identities afresh.

    Parameters
    ----------
    backend : IdentityBackend
        Backend used for the ``list_identities`` call.
    provider : str
        Provider name fragment to resolve (e.g. ``"google"``).
    """

    def __init__(self, backend: IdentityBackend, provider: str) -> None:
        self.backend = backend
        self.provider = provider

    async def resolve(self) -> Identity | None:
        """Return the current identity for the configured provider."""
        identities = await self.backend.list_identities()
        identity = find_provider_identity(identities, self.provider)
        if identity is None:
            logger.debug(
                "No %s identity among %d linked identities", self.provider, len(identities)
            )
        return identity

    async def access_token(self) -> str | None:
        """Return the provider access token, or None when there is none."""
        identity = await self.resolve()
        if identity is None or not identity.access_token:
            return None
        return identity.access_token
