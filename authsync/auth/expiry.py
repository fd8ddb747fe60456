"""Provider access-token expiry policy."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta


DEFAULT_LOOKAHEAD = timedelta(minutes=5)


def parse_timestamp(value: str | datetime | None) -> datetime | None:
    """Parse an ISO-8601 timestamp into an aware datetime.

    Naive values are taken as UTC. Returns None for absent or
    unparseable input.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = value.strip()
        if not text:
            return None
        if text.endswith(("Z", "z")):
            text = f"{text[:-1]}+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def is_expired_or_expiring_soon(
    expiry: str | datetime | None,
    lookahead: timedelta = DEFAULT_LOOKAHEAD,
    now: datetime | None = None,
) -> bool:
    """Decide whether a token should be refreshed.

    Parameters
    ----------
    expiry : str, datetime or None
        Token expiry. Absent or unparseable values count as expired.
    lookahead : timedelta
        Tokens expiring within this window count as expired (default 5 min).
    now : datetime, optional
        Reference time (defaults to the current UTC time).

    Returns
    -------
    bool
        True when ``expiry <= now + lookahead``.
    """
    expires_at = parse_timestamp(expiry)
    if expires_at is None:
        return True
    reference = parse_timestamp(now) if now is not None else datetime.now(UTC)
    return expires_at <= reference + lookahead
