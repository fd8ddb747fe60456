"""Authentication state coordinator.

AuthCoordinator owns the published ``AuthState`` and is the only writer
of it. Every mutating operation converges through ``refresh()`` (or, for
sign-out, an unconditional local clear), so the observed user/profile
pair always comes from the most recently completed operation.
"""

# pylint: disable=logging-too-many-args,too-many-instance-attributes

from __future__ import annotations

import asyncio
import contextlib
import dataclasses
import logging

from datetime import timedelta
from typing import TYPE_CHECKING, Any

from .auth.callback import parse_callback_url
from .auth.expiry import DEFAULT_LOOKAHEAD, is_expired_or_expiring_soon
from .auth.identities import IdentityTokenResolver
from .auth.session import SessionEstablisher
from .exceptions import (
    OperationInProgress,
    SessionEstablishedButUserMissing,
    TokenRefreshFailed,
    UserCancelled,
)
from .types import AuthState, AuthStatus, Profile


if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from .auth.agent import ExternalAgent
    from .auth.flow import OAuthFlowInitiator
    from .auth.profile import ProfileEnricher
    from .backend import IdentityBackend
    from .config import AuthSyncSettings
    from .types import Session, User

    StateListener = Callable[[AuthState], None]


logger = logging.getLogger("authsync.coordinator")


class AuthCoordinator:
    """Single owner of the user/profile authentication state.

    Only one operation runs at a time. A mutating call made while another
    operation is in flight raises ``OperationInProgress``; ``refresh()``
    made while busy returns the current state without doing anything.

    Parameters
    ----------
    backend : IdentityBackend
        Remote identity/session store.
    flow : OAuthFlowInitiator
        Drives delegated logins.
    enricher : ProfileEnricher
        Adds provider profile data to the base profile.
    provider : str
        Provider name fragment used to locate the delegated identity.
    expiry_lookahead : timedelta
        Provider tokens expiring within this window are refreshed.
    """

    def __init__(
        self,
        backend: IdentityBackend,
        flow: OAuthFlowInitiator,
        enricher: ProfileEnricher,
        provider: str = "google",
        expiry_lookahead: timedelta = DEFAULT_LOOKAHEAD,
    ) -> None:
        """Initialize the coordinator."""
        self.backend = backend
        self.flow = flow
        self.enricher = enricher
        self.provider = provider
        self.expiry_lookahead = expiry_lookahead
        self.resolver = IdentityTokenResolver(backend, provider)
        self.establisher = SessionEstablisher(backend, provider)

        self._state = AuthState()
        self._operation: str | None = None
        self._listeners: list[StateListener] = []

    @classmethod
    def from_settings(
        cls,
        settings: AuthSyncSettings | None = None,
        agent: ExternalAgent | None = None,
        backend: IdentityBackend | None = None,
    ) -> AuthCoordinator:
        """Wire a coordinator from configuration.

        Parameters
        ----------
        settings : AuthSyncSettings, optional
            Settings to use (defaults to ``get_settings()``).
        agent : ExternalAgent, optional
            Login agent (defaults to a ``BrowserAgent``).
        backend : IdentityBackend, optional
            Backend (defaults to an ``AppwriteBackend``).
        """
        from .auth.agent import BrowserAgent
        from .auth.flow import OAuthFlowInitiator
        from .auth.profile import GoogleProfileProvider, ProfileEnricher
        from .backend import AppwriteBackend
        from .config import get_settings
        from .log import get_logger

        settings = settings or get_settings()
        get_logger()

        backend = backend or AppwriteBackend.from_settings(settings)
        flow = OAuthFlowInitiator(
            backend,
            agent or BrowserAgent.from_settings(settings),
            provider=settings.oauth.provider,
            platform=settings.oauth.platform,
            scheme=settings.redirect_scheme,
            web_redirect_url=settings.oauth.web_redirect_url,
        )
        enricher = ProfileEnricher(GoogleProfileProvider.from_settings(settings))
        return cls(
            backend,
            flow,
            enricher,
            provider=settings.oauth.provider,
            expiry_lookahead=timedelta(seconds=settings.oauth.expiry_lookahead_seconds),
        )

    # ── Read interface ──────────────────────────────────────────────

    @property
    def state(self) -> AuthState:
        """The current (immutable) state snapshot."""
        return self._state

    @property
    def user(self) -> User | None:
        """The cached backend user, if authenticated."""
        return self._state.user

    @property
    def profile(self) -> Profile | None:
        """The derived profile, if authenticated."""
        return self._state.profile

    @property
    def is_loading(self) -> bool:
        """Whether an operation is in flight."""
        return self._state.is_loading

    @property
    def status(self) -> AuthStatus:
        """Coarse authentication status."""
        return self._state.status

    @property
    def current_operation(self) -> str | None:
        """Name of the operation in flight, if any."""
        return self._operation

    def subscribe(self, listener: StateListener) -> Callable[[], None]:
        """Call ``listener`` with every new state.

        Returns
        -------
        callable
            Function that removes the listener.
        """
        self._listeners.append(listener)

        def _unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                self._listeners.remove(listener)

        return _unsubscribe

    # ── State plumbing ──────────────────────────────────────────────

    def _publish(self, **changes: Any) -> None:
        self._state = dataclasses.replace(self._state, **changes)
        for listener in list(self._listeners):
            try:
                listener(self._state)
            except Exception:
                logger.exception("State listener %r failed", listener)

    def _clear(self) -> None:
        self._publish(user=None, profile=None, is_loading=False, initialized=True)

    @contextlib.contextmanager
    def _guard(self, operation: str) -> Iterator[None]:
        if self._operation is not None:
            msg = f"Cannot start {operation} while {self._operation} is running"
            raise OperationInProgress(msg, operation=self._operation)
        self._operation = operation
        try:
            yield
        finally:
            self._operation = None

    # ── Commands ────────────────────────────────────────────────────

    async def initialize(self) -> AuthState:
        """Check the backend for an existing session (run once at startup)."""
        return await self._run_refresh("initialize")

    async def refresh(self) -> AuthState:
        """Re-sync user and profile from the backend. Never raises."""
        return await self._run_refresh("refresh")

    async def _run_refresh(self, operation: str) -> AuthState:
        if self._operation is not None:
            logger.debug("Skipping %s while %s is running", operation, self._operation)
            return self._state
        with self._guard(operation):
            self._publish(is_loading=True)
            await self._refresh()
        return self._state

    async def _refresh(self) -> None:
        """Converge user and profile with the backend.

        Failures clear user and profile together; nothing propagates.
        """
        try:
            session = await self.backend.get_current_session()
            delegated = session is not None and session.is_delegated

            if delegated:
                try:
                    await self._refresh_provider_tokens()
                except TokenRefreshFailed as exc:
                    logger.warning("%s", exc)

            user = await self.backend.get_current_user()
            if user is None:
                logger.debug("No current user")
                self._publish(user=None, profile=None)
            else:
                profile = await self._build_profile(user, session if delegated else None)
                self._publish(user=user, profile=profile)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Auth state refresh failed, signing out locally: %s", exc)
            self._publish(user=None, profile=None)
        finally:
            self._publish(is_loading=False, initialized=True)

    async def _refresh_provider_tokens(self) -> None:
        """Refresh the session when the provider token is (nearly) expired."""
        try:
            identity = await self.resolver.resolve()
            if identity is None:
                return
            if not is_expired_or_expiring_soon(
                identity.access_token_expiry, lookahead=self.expiry_lookahead
            ):
                return
            logger.info("Provider token for %s is expiring, refreshing session", self.provider)
            await self.backend.refresh_session()
        except Exception as exc:
            msg = f"Provider token refresh failed: {exc}"
            raise TokenRefreshFailed(msg, provider=self.provider) from exc

    async def _build_profile(self, user: User, delegated_session: Session | None) -> Profile:
        base = Profile.from_user(user)
        if delegated_session is None:
            return base

        try:
            token = await self.resolver.access_token()
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not read %s identity: %s", self.provider, exc)
            return base
        return await self.enricher.enrich(base, token)

    async def sign_in_with_password(self, email: str, password: str) -> AuthState:
        """Sign in with email and password.

        Raises
        ------
        OperationInProgress
            If another operation is running.
        Exception
            Whatever the backend raised; state is left signed out.
        """
        with self._guard("sign_in"):
            self._publish(is_loading=True)
            await self._password_sign_in(email, password)
        return self._state

    async def sign_up(self, email: str, password: str, name: str) -> AuthState:
        """Create an account, then sign in with it.

        Raises
        ------
        OperationInProgress
            If another operation is running.
        Exception
            Account creation failures leave user/profile untouched;
            sign-in failures leave state signed out.
        """
        with self._guard("sign_up"):
            self._publish(is_loading=True)
            try:
                await self.backend.create_account(email, password, name)
            except (Exception, asyncio.CancelledError) as exc:
                logger.warning("Account creation failed: %s", exc)
                self._publish(is_loading=False)
                raise
            await self._password_sign_in(email, password)
        return self._state

    async def _password_sign_in(self, email: str, password: str) -> None:
        try:
            await self.backend.create_password_session(email, password)
        except (Exception, asyncio.CancelledError) as exc:
            logger.warning("Password sign-in failed: %s", exc)
            self._clear()
            raise
        await self._refresh()

    async def sign_in_with_delegated_provider(self) -> AuthState:
        """Sign in through the external provider login flow.

        Raises
        ------
        OperationInProgress
            If another operation is running.
        UserCancelled
            If the user dismissed the login page.
        ExternalFailure
            If the provider or agent failed.
        InvalidCallbackFormat, MissingCredentials
            If the redirect could not be parsed.
        SessionCreationFailed
            If the backend rejected the credentials.
        SessionEstablishedButUserMissing
            If the new session has no user.
        """
        with self._guard("delegated_sign_in"):
            self._publish(is_loading=True)
            try:
                callback_url = await self.flow.run()
                credentials = parse_callback_url(
                    callback_url, provider=self.provider, flow_id=self.flow.flow_id
                )
                await self.establisher.establish(credentials)
                user = await self.backend.get_current_user()
                if user is None:
                    msg = "Session was created but the backend reports no current user"
                    raise SessionEstablishedButUserMissing(
                        msg, provider=self.provider, flow_id=self.flow.flow_id
                    )
            except UserCancelled:
                logger.info("Delegated sign-in cancelled by user")
                self._clear()
                raise
            except (Exception, asyncio.CancelledError) as exc:
                logger.warning("Delegated sign-in failed: %s", exc)
                self._clear()
                raise
            await self._refresh()
        return self._state

    def cancel_delegated_sign_in(self) -> None:
        """Dismiss a running delegated sign-in (user action)."""
        self.flow.cancel()

    async def sign_out(self) -> AuthState:
        """Sign out; local state is cleared even if the backend call fails.

        Raises
        ------
        OperationInProgress
            If another operation is running.
        """
        with self._guard("sign_out"):
            self._publish(is_loading=True)
            try:
                await self.backend.delete_session()
            except Exception as exc:  # noqa: BLE001
                logger.warning("Session deletion failed, clearing local state anyway: %s", exc)
            finally:
                self._clear()
        return self._state

    async def aclose(self) -> None:
        """Release network resources held by the backend and profile provider."""
        await self.backend.aclose()
        await self.enricher.provider.close()
