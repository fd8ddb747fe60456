"""Delegated-login flow orchestrator.

Provides OAuthFlowInitiator, which computes the redirect URI for the
current platform, asks the backend for a provider login URL and drives an
external agent until it reports success, cancellation or failure.

The wait on the external agent has no timeout: a human may take as long
as they need on the provider's consent screens.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import asyncio
import json
import logging
import secrets

from typing import TYPE_CHECKING
from urllib.parse import parse_qs, urlsplit

from ..exceptions import ConfigurationError, ExternalFailure, UserCancelled
from ..types import AgentResultType, FlowState


if TYPE_CHECKING:
    from ..backend import IdentityBackend
    from .agent import ExternalAgent


logger = logging.getLogger("authsync.auth")


def build_redirect_uri(platform: str, scheme: str, web_redirect_url: str = "") -> str:
    """Build the URI the external agent must land on to return control.

    Parameters
    ----------
    platform : str
        ``"ios"``, ``"android"``, ``"web"`` or ``"desktop"``.
    scheme : str
        Custom URL scheme registered by the mobile app.
    web_redirect_url : str
        Redirect URL for the web platform.

    Returns
    -------
    str
        The redirect URI.

    Raises
    ------
    ConfigurationError
        If the platform needs a value that is not configured.
    """
    if platform in ("ios", "android"):
        if not scheme:
            msg = "A redirect scheme is required on mobile platforms"
            raise ConfigurationError(msg, setting="oauth.redirect_scheme")
        return f"{scheme}://"
    if platform == "web":
        if not web_redirect_url:
            msg = "A web redirect URL is required on the web platform"
            raise ConfigurationError(msg, setting="oauth.web_redirect_url")
        return web_redirect_url
    msg = f"Platform {platform!r} needs an agent that hosts its own redirect endpoint"
    raise ConfigurationError(msg, setting="oauth.platform")


def callback_error(url: str) -> str | None:
    """Return the provider error carried by a redirect URL, if any.

    Success and failure share one redirect URI, so a failed login lands
    there with an ``error`` query parameter instead of credentials. The
    backend encodes it as a JSON object with a ``message`` field.
    """
    try:
        query = urlsplit(url).query
    except ValueError:
        return None
    raw = (parse_qs(query).get("error") or [""])[0]
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        return raw
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return raw


class OAuthFlowInitiator:
    """Runs one delegated-login attempt to a terminal outcome.

    Parameters
    ----------
    backend : IdentityBackend
        Backend that issues the provider login URL.
    agent : ExternalAgent
        Agent that shows the login page and reports the result.
    provider : str
        Provider requested from the backend (default ``"google"``).
    platform : str
        Client platform used to build the redirect URI.
    scheme : str
        Custom URL scheme for mobile platforms.
    web_redirect_url : str
        Redirect URL for the web platform.
    """

    def __init__(
        self,
        backend: IdentityBackend,
        agent: ExternalAgent,
        provider: str = "google",
        platform: str = "desktop",
        scheme: str = "",
        web_redirect_url: str = "",
    ) -> None:
        """Initialize the flow initiator."""
        self.backend = backend
        self.agent = agent
        self.provider = provider
        self.platform = platform
        self.scheme = scheme
        self.web_redirect_url = web_redirect_url

        self._flow_state = FlowState.IDLE
        self._flow_id: str | None = None

    @property
    def flow_state(self) -> FlowState:
        """Current state of the flow."""
        return self._flow_state

    @property
    def flow_id(self) -> str | None:
        """Identifier of the current or last attempt."""
        return self._flow_id

    def redirect_uri(self) -> str:
        """Redirect URI for this attempt, preferring one hosted by the agent."""
        return self.agent.start() or build_redirect_uri(
            self.platform, self.scheme, self.web_redirect_url
        )

    async def run(self) -> str:  # noqa: C901
        """Run the flow and return the success redirect URL.

        Returns
        -------
        str
            The URL the agent landed on; it carries the callback credentials.

        Raises
        ------
        UserCancelled
            If the user dismissed the agent or the task was cancelled.
        ExternalFailure
            If the backend, provider or agent reported a failure, or the
            agent's outcome could not be interpreted.
        """
        self._flow_id = secrets.token_urlsafe(16)
        self._flow_state = FlowState.REQUESTING_LOGIN_URL

        try:
            try:
                redirect_uri = self.redirect_uri()
                login_url = await self.backend.request_delegated_login_url(
                    self.provider, redirect_uri, redirect_uri
                )
            except ConfigurationError:
                self._flow_state = FlowState.FAILED
                raise
            except Exception as exc:
                self._flow_state = FlowState.FAILED
                msg = f"Could not obtain a login URL: {exc}"
                raise ExternalFailure(msg, provider=self.provider, flow_id=self._flow_id) from exc

            logger.info("Login flow %s: awaiting external agent", self._flow_id)
            self._flow_state = FlowState.AWAITING_EXTERNAL_AGENT

            try:
                result = await self.agent.open_auth_session(login_url, redirect_uri)
            except asyncio.CancelledError:
                self._flow_state = FlowState.CANCELLED
                logger.info("Login flow %s: task cancelled", self._flow_id)
                raise
            except Exception as exc:
                self._flow_state = FlowState.FAILED
                msg = f"External agent failed: {exc}"
                raise ExternalFailure(msg, provider=self.provider, flow_id=self._flow_id) from exc

            if result.type == AgentResultType.CANCEL:
                self._flow_state = FlowState.CANCELLED
                msg = "Login was cancelled"
                raise UserCancelled(msg, provider=self.provider, flow_id=self._flow_id)

            if result.type == AgentResultType.FAILURE:
                self._flow_state = FlowState.FAILED
                msg = f"Provider reported a failure: {result.error or 'unknown error'}"
                raise ExternalFailure(msg, provider=self.provider, flow_id=self._flow_id)

            if result.type != AgentResultType.SUCCESS or not result.url:
                self._flow_state = FlowState.FAILED
                msg = "External agent returned no redirect URL"
                raise ExternalFailure(msg, provider=self.provider, flow_id=self._flow_id)

            if not result.url.startswith(redirect_uri):
                self._flow_state = FlowState.FAILED
                msg = "External agent landed outside the redirect URI"
                raise ExternalFailure(msg, provider=self.provider, flow_id=self._flow_id)

            provider_error = callback_error(result.url)
            if provider_error is not None:
                self._flow_state = FlowState.FAILED
                msg = f"Provider reported a failure: {provider_error}"
                raise ExternalFailure(msg, provider=self.provider, flow_id=self._flow_id)

            self._flow_state = FlowState.SUCCEEDED
            logger.info("Login flow %s completed", self._flow_id)
            return result.url
        finally:
            self.agent.stop()

    def cancel(self) -> None:
        """Ask the agent to dismiss the running session."""
        if self._flow_state == FlowState.AWAITING_EXTERNAL_AGENT:
            logger.info("Login flow %s: cancel requested", self._flow_id)
        self.agent.cancel()
