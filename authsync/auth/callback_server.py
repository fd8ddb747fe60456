"""Ephemeral localhost HTTP server for delegated-login redirect capture.

Used on desktop platforms to intercept the backend's redirect on a
randomly assigned port. Serves a success/error HTML page and records the
full redirect URL so the caller can parse ``userId``/``secret`` from it.
"""

# pylint: disable=logging-too-many-args

# pylint: disable=C0103,W0212

from __future__ import annotations

import html
import logging
import threading

from http.server import BaseHTTPRequestHandler, HTTPServer
from typing import Any
from urllib.parse import parse_qs, urlparse


logger = logging.getLogger("authsync.auth")

CALLBACK_PATH = "/callback"

_PAGE_STYLE = """
  body {{ font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif;
         display: flex; align-items: center; justify-content: center;
         height: 100vh; margin: 0; background: #f0f2f5; color: #1a1a2e; }}
  .card {{ text-align: center; padding: 2rem 3rem; background: white;
          border-radius: 12px; box-shadow: 0 2px 12px rgba(0,0,0,.08); }}
  h1 {{ font-size: 1.5rem; margin-bottom: 0.5rem; }}
  p {{ color: #666; }}
"""

_PAGE_HTML = """<!DOCTYPE html>
<html>
<head><title>{title}</title>
<style>""" + _PAGE_STYLE + """</style></head>
<body><div class="card">
  <h1>{heading}</h1>
  <p>{body}</p>
</div></body></html>"""


def _page(title: str, heading: str, body: str) -> str:
    return _PAGE_HTML.format(title=title, heading=heading, body=body)


_SUCCESS_HTML = _page("Sign-in Complete", "&#x2705; Sign-in complete", "You can close this window.")
_WAITING_HTML = _page(
    "Waiting for Sign-in",
    "Waiting for sign-in&hellip;",
    "Please complete the login in the browser window.",
)


class CallbackServer:
    """Ephemeral localhost HTTP server capturing the login redirect.

    Only the first request to ``/callback`` is recorded.

    Parameters
    ----------
    host : str
        Bind address (default ``"127.0.0.1"``).
    port : int
        Port number (``0`` for auto-assign).
    """

    def __init__(self, host: str = "127.0.0.1", port: int = 0) -> None:
        """Initialize the callback server."""
        self._host = host
        self._port = port
        self._server: HTTPServer | None = None
        self._thread: threading.Thread | None = None
        self._result: dict[str, Any] | None = None
        self._result_event = threading.Event()
        self._actual_port: int = 0

    @property
    def redirect_uri(self) -> str:
        """The redirect URI served by this instance.

        Returns
        -------
        str
            The full redirect URI (e.g. ``http://127.0.0.1:54321/callback``).
        """
        return f"http://{self._host}:{self._actual_port}{CALLBACK_PATH}"

    @property
    def received(self) -> bool:
        """Whether the redirect has arrived."""
        return self._result_event.is_set()

    @property
    def result(self) -> dict[str, Any] | None:
        """The captured redirect (``url``, ``error``, ``error_description``)."""
        return self._result

    def start(self) -> str:
        """Start the callback server on a daemon thread.

        Returns
        -------
        str
            The redirect URI to hand to the backend.
        """
        server_ref = self

        class _CallbackHandler(BaseHTTPRequestHandler):
            """HTTP request handler for login redirects."""

            def do_GET(self) -> None:
                """Handle GET requests."""
                parsed = urlparse(self.path)

                if parsed.path == CALLBACK_PATH:
                    params = parse_qs(parsed.query)
                    result: dict[str, Any] = {
                        "url": f"http://{server_ref._host}:{server_ref._actual_port}{self.path}",
                        "error": params.get("error", [None])[0],
                        "error_description": params.get("error_description", [None])[0],
                    }

                    if not server_ref._result_event.is_set():
                        server_ref._result = result

                        if result.get("error"):
                            error_msg = result.get("error_description") or result["error"]
                            safe_msg = html.escape(str(error_msg), quote=True)
                            self._send_html(
                                _page("Sign-in Error", "&#x274C; Sign-in failed", safe_msg)
                            )
                        else:
                            self._send_html(_SUCCESS_HTML)

                        server_ref._result_event.set()
                        # Shut down from another thread; serve_forever would deadlock here.
                        threading.Thread(target=self._shutdown_server, daemon=True).start()
                    else:
                        self._send_html(_SUCCESS_HTML)

                elif parsed.path == "/":
                    self._send_html(_WAITING_HTML)
                else:
                    self.send_error(404)

            def _send_html(self, html_content: str) -> None:
                """Send an HTML response with security headers."""
                encoded = html_content.encode("utf-8")
                self.send_response(200)
                self.send_header("Content-Type", "text/html; charset=utf-8")
                self.send_header("Content-Length", str(len(encoded)))
                self.send_header("Cache-Control", "no-store")
                self.send_header(
                    "Content-Security-Policy",
                    "default-src 'none'; style-src 'unsafe-inline'",
                )
                self.send_header("X-Content-Type-Options", "nosniff")
                self.end_headers()
                self.wfile.write(encoded)

            def _shutdown_server(self) -> None:
                if server_ref._server:
                    server_ref._server.shutdown()

            def log_message(self, *args: Any) -> None:
                """Redirect HTTP server logging to the authsync logger."""
                if args:
                    logger.debug("Callback server: %s", args[0] % args[1:])

        self._server = HTTPServer((self._host, self._port), _CallbackHandler)
        self._actual_port = self._server.server_address[1]

        self._thread = threading.Thread(target=self._server.serve_forever, daemon=True)
        self._thread.start()

        logger.debug("Callback server started on %s", self.redirect_uri)
        return self.redirect_uri

    def stop(self) -> None:
        """Force-shutdown the callback server."""
        if self._server:
            self._server.shutdown()
            self._server.server_close()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=5)
        self._server = None
        self._thread = None
