"""External login agents.

An agent opens the provider's login page in an isolated browsing context
and reports how it ended. The app never sees the provider's credential
UI; it only receives the final redirect.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import asyncio
import logging
import threading
import webbrowser

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from ..types import AgentResult, AgentResultType
from .callback_server import CallbackServer


if TYPE_CHECKING:
    from collections.abc import Callable

    from ..config import AuthSyncSettings


logger = logging.getLogger("authsync.auth")


class ExternalAgent(ABC):
    """Drives one external browsing session to a terminal result.

    Waiting is unbounded: only success, an explicit cancel, or an
    agent-reported failure ends ``open_auth_session``.
    """

    def start(self) -> str | None:
        """Prepare the agent for a new session.

        Returns
        -------
        str or None
            A redirect URI hosted by the agent itself, or None when the
            platform redirect URI should be used.
        """
        return None

    @abstractmethod
    async def open_auth_session(self, url: str, redirect_uri: str) -> AgentResult:
        """Open ``url`` and wait until navigation reaches ``redirect_uri``."""

    def cancel(self) -> None:  # noqa: B027
        """Dismiss the running session (user-initiated)."""

    def stop(self) -> None:  # noqa: B027
        """Release resources acquired by ``start``."""


class BrowserAgent(ExternalAgent):
    """Desktop agent: system browser plus a loopback callback server.

    Parameters
    ----------
    host : str
        Bind address of the callback server.
    port : int
        Callback server port (``0`` for auto-assign).
    poll_interval : float
        Seconds between checks for the redirect.
    open_browser : callable, optional
        Function opening a URL (defaults to ``webbrowser.open``).
    """

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 0,
        poll_interval: float = 0.1,
        open_browser: Callable[[str], object] | None = None,
    ) -> None:
        """Initialize the browser agent."""
        self.host = host
        self.port = port
        self.poll_interval = poll_interval
        self._open_browser = open_browser or webbrowser.open
        self._server: CallbackServer | None = None
        self._cancelled = threading.Event()

    @classmethod
    def from_settings(cls, settings: AuthSyncSettings) -> BrowserAgent:
        """Build a browser agent from ``AuthSyncSettings``."""
        return cls(
            host=settings.oauth.callback_host,
            port=settings.oauth.callback_port,
            poll_interval=settings.oauth.poll_interval_seconds,
        )

    def start(self) -> str:
        """Start the loopback server and return its redirect URI."""
        self.stop()
        self._cancelled = threading.Event()
        self._server = CallbackServer(host=self.host, port=self.port)
        return self._server.start()

    async def open_auth_session(self, url: str, redirect_uri: str) -> AgentResult:
        """Open the system browser and wait for the loopback redirect."""
        server = self._server
        if server is None:
            return AgentResult(AgentResultType.FAILURE, error="Callback server is not running")

        if not self._open_browser(url):
            logger.info("Open this URL to sign in: %s", url)

        while not server.received:
            if self._cancelled.is_set():
                return AgentResult(AgentResultType.CANCEL)
            await asyncio.sleep(self.poll_interval)

        result = server.result or {}
        if result.get("error"):
            return AgentResult(
                AgentResultType.FAILURE,
                url=result.get("url"),
                error=result.get("error_description") or result["error"],
            )
        return AgentResult(AgentResultType.SUCCESS, url=result.get("url"))

    def cancel(self) -> None:
        """Stop waiting; ``open_auth_session`` returns a CANCEL result."""
        self._cancelled.set()

    def stop(self) -> None:
        """Shut down the loopback server."""
        if self._server is not None:
            self._server.stop()
            self._server = None
