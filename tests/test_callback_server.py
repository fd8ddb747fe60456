"""Tests for the loopback callback server and the browser agent."""

# pylint: disable=consider-using-with

from __future__ import annotations

import asyncio
import contextlib
import threading
import time

from urllib.error import HTTPError
from urllib.parse import urlencode
from urllib.request import urlopen

import pytest

from authsync.auth.agent import BrowserAgent
from authsync.auth.callback_server import CallbackServer
from authsync.types import AgentResultType


def _send_later(url: str, delay: float = 0.1) -> threading.Thread:
    """Request ``url`` from a background thread after ``delay`` seconds."""

    def _send() -> None:
        time.sleep(delay)
        with contextlib.suppress(Exception):
            urlopen(url, timeout=5)  # noqa: S310

    t = threading.Thread(target=_send, daemon=True)
    t.start()
    return t


def _wait_received(server: CallbackServer, timeout: float = 5.0) -> None:
    deadline = time.monotonic() + timeout
    while not server.received and time.monotonic() < deadline:
        time.sleep(0.02)


class TestCallbackServer:
    """Tests for CallbackServer."""

    def test_start_and_stop(self) -> None:
        """Server binds to a port and stops cleanly."""
        server = CallbackServer()
        redirect_uri = server.start()
        assert redirect_uri.startswith("http://127.0.0.1:")
        assert redirect_uri.endswith("/callback")
        assert server._actual_port > 0
        server.stop()

    def test_captures_redirect_url(self) -> None:
        """The full redirect URL including credentials is recorded."""
        server = CallbackServer()
        server.start()
        try:
            params = urlencode({"secret": "S", "userId": "U"})
            _send_later(f"{server.redirect_uri}?{params}")
            _wait_received(server)
            assert server.received
            assert server.result is not None
            assert server.result["url"] == f"{server.redirect_uri}?{params}"
            assert server.result["error"] is None
        finally:
            server.stop()

    def test_captures_error(self) -> None:
        """A failure redirect records the error."""
        server = CallbackServer()
        server.start()
        try:
            _send_later(f"{server.redirect_uri}?{urlencode({'error': 'access_denied'})}")
            _wait_received(server)
            assert server.result is not None
            assert server.result["error"] == "access_denied"
        finally:
            server.stop()

    def test_waiting_page(self) -> None:
        """The root path serves the waiting page."""
        server = CallbackServer()
        server.start()
        try:
            resp = urlopen(f"http://127.0.0.1:{server._actual_port}/", timeout=5)  # noqa: S310
            assert "Waiting for sign-in" in resp.read().decode("utf-8")
            assert not server.received
        finally:
            server.stop()

    def test_unknown_path(self) -> None:
        """Other paths return 404."""
        server = CallbackServer()
        server.start()
        try:
            with pytest.raises(HTTPError) as exc_info:
                urlopen(f"http://127.0.0.1:{server._actual_port}/other", timeout=5)  # noqa: S310
            assert exc_info.value.code == 404
        finally:
            server.stop()


class TestBrowserAgent:
    """Tests for BrowserAgent."""

    def test_success(self) -> None:
        """The agent opens the login URL and reports the loopback redirect."""
        opened: list[str] = []
        agent = BrowserAgent(poll_interval=0.02, open_browser=lambda url: opened.append(url) or True)
        redirect_uri = agent.start()
        try:
            _send_later(f"{redirect_uri}?secret=S&userId=U", delay=0.2)
            result = asyncio.run(agent.open_auth_session("https://idp/login", redirect_uri))
        finally:
            agent.stop()
        assert opened == ["https://idp/login"]
        assert result.type == AgentResultType.SUCCESS
        assert result.url == f"{redirect_uri}?secret=S&userId=U"

    def test_failure_redirect(self) -> None:
        """An error redirect is reported as a failure."""
        agent = BrowserAgent(poll_interval=0.02, open_browser=lambda url: True)
        redirect_uri = agent.start()
        try:
            _send_later(f"{redirect_uri}?error=access_denied", delay=0.2)
            result = asyncio.run(agent.open_auth_session("https://idp/login", redirect_uri))
        finally:
            agent.stop()
        assert result.type == AgentResultType.FAILURE
        assert result.error == "access_denied"

    def test_cancel(self) -> None:
        """cancel() ends the wait with a CANCEL result."""
        agent = BrowserAgent(poll_interval=0.02, open_browser=lambda url: True)
        redirect_uri = agent.start()

        async def scenario():
            loop = asyncio.get_running_loop()
            loop.call_later(0.2, agent.cancel)
            return await agent.open_auth_session("https://idp/login", redirect_uri)

        try:
            result = asyncio.run(scenario())
        finally:
            agent.stop()
        assert result.type == AgentResultType.CANCEL

    def test_not_started(self) -> None:
        """Opening a session before start() is a failure, not a hang."""
        agent = BrowserAgent(open_browser=lambda url: True)
        result = asyncio.run(agent.open_auth_session("https://idp/login", "http://x/callback"))
        assert result.type == AgentResultType.FAILURE
