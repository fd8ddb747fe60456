"""Session establishment from delegated-login credentials."""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import logging

from typing import TYPE_CHECKING

from ..exceptions import SessionCreationFailed


if TYPE_CHECKING:
    from ..backend import IdentityBackend
    from ..types import CallbackCredentials, Session


logger = logging.getLogger("authsync.auth")


class SessionEstablisher:
    """Exchanges callback credentials for a backend session.

    Parameters
    ----------
    backend : IdentityBackend
        Backend performing the credential exchange.
    provider : str, optional
        Provider name recorded in error context.
    """

    def __init__(self, backend: IdentityBackend, provider: str | None = None) -> None:
        self.backend = backend
        self.provider = provider

    async def establish(self, credentials: CallbackCredentials) -> Session:
        """Create a session for ``credentials``.

        Raises
        ------
        SessionCreationFailed
            If the backend rejects the exchange for any reason. The call
            is not retried.
        """
        try:
            session = await self.backend.create_session_from_credentials(
                credentials.user_id, credentials.secret
            )
        except Exception as exc:
            msg = f"Backend rejected the login credentials: {exc}"
            raise SessionCreationFailed(
                msg, provider=self.provider, user_id=credentials.user_id
            ) from exc

        logger.info("Session %s established for user %s", session.id, credentials.user_id)
        return session
