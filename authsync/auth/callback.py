"""Delegated-login redirect callback parsing.

The backend hands control back to the app by redirecting to the
configured redirect URI with ``userId`` and ``secret`` query parameters.
"""

from __future__ import annotations

from urllib.parse import parse_qs, urlsplit

from ..exceptions import InvalidCallbackFormat, MissingCredentials
from ..types import CallbackCredentials


def parse_callback_url(
    callback_url: str,
    provider: str | None = None,
    flow_id: str | None = None,
) -> CallbackCredentials:
    """Extract delegated-login credentials from a redirect URL.

    Parameters
    ----------
    callback_url : str
        The URL the external agent landed on.
    provider : str, optional
        Provider name attached to raised errors.
    flow_id : str, optional
        Login flow identifier attached to raised errors.

    Returns
    -------
    CallbackCredentials
        The ``userId``/``secret`` pair.

    Raises
    ------
    InvalidCallbackFormat
        If ``callback_url`` is not a well-formed URL.
    MissingCredentials
        If ``userId`` or ``secret`` is absent or empty.
    """
    if not isinstance(callback_url, str) or not callback_url.strip():
        msg = "Callback URL is empty"
        raise InvalidCallbackFormat(msg, provider=provider, flow_id=flow_id)

    try:
        parts = urlsplit(callback_url.strip())
        # Accessing port validates it; urlsplit is lazy about it.
        _ = parts.port
    except ValueError as exc:
        msg = f"Callback URL is not a valid URL: {exc}"
        raise InvalidCallbackFormat(msg, provider=provider, flow_id=flow_id) from exc

    if not parts.scheme or not (parts.netloc or parts.path or parts.query):
        msg = "Callback URL has no scheme"
        raise InvalidCallbackFormat(msg, provider=provider, flow_id=flow_id)

    params = parse_qs(parts.query, keep_blank_values=True)
    user_id = (params.get("userId") or [""])[0]
    secret = (params.get("secret") or [""])[0]

    missing = [name for name, value in (("userId", user_id), ("secret", secret)) if not value]
    if missing:
        msg = f"Callback URL is missing {' and '.join(missing)}"
        raise MissingCredentials(msg, missing=missing, provider=provider, flow_id=flow_id)

    return CallbackCredentials(user_id=user_id, secret=secret)
