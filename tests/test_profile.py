"""Tests for third-party profile enrichment."""

from __future__ import annotations

import asyncio

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from authsync.auth.profile import GoogleProfileProvider, ProfileEnricher
from authsync.exceptions import ProfileFetchFailed
from authsync.types import Profile


def _run(coro):
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


@pytest.fixture()
def base() -> Profile:
    """A base profile built from a backend user."""
    return Profile(name="Ada Lovelace", email="a@x.com")


def _provider(**kwargs) -> MagicMock:
    provider = MagicMock()
    provider.fetch_profile = AsyncMock(**kwargs)
    return provider


class TestProfileEnricher:
    """Tests for ProfileEnricher.enrich."""

    @pytest.mark.parametrize("token", [None, ""])
    def test_absent_token_returns_base(self, base: Profile, token: str | None) -> None:
        """Without a token the base profile is returned untouched."""
        provider = _provider(return_value={"name": "Other"})
        result = _run(ProfileEnricher(provider).enrich(base, token))
        assert result is base
        assert result.name == "Ada Lovelace"
        assert result.email == "a@x.com"
        assert result.avatar is None
        provider.fetch_profile.assert_not_awaited()

    def test_overlays_name_and_avatar(self, base: Profile) -> None:
        """Provider name and picture override the base profile."""
        provider = _provider(return_value={"name": "Ada", "picture": "http://img/p.png"})
        result = _run(ProfileEnricher(provider).enrich(base, "tok"))
        assert result == Profile(name="Ada", email="a@x.com", avatar="http://img/p.png")
        provider.fetch_profile.assert_awaited_once_with("tok")

    def test_email_is_not_overridden(self, base: Profile) -> None:
        """The provider email never replaces the account email."""
        provider = _provider(return_value={"email": "other@x.com"})
        result = _run(ProfileEnricher(provider).enrich(base, "tok"))
        assert result.email == "a@x.com"

    @pytest.mark.parametrize(
        "payload",
        [{}, {"name": ""}, {"name": "   ", "picture": None}, {"picture": 42}],
    )
    def test_empty_fields_never_overwrite(self, base: Profile, payload: dict) -> None:
        """Empty or missing provider fields leave the base values in place."""
        provider = _provider(return_value=payload)
        result = _run(ProfileEnricher(provider).enrich(base, "tok"))
        assert result == base

    def test_partial_overlay(self, base: Profile) -> None:
        """Only the provided field is applied."""
        provider = _provider(return_value={"picture": "http://img/p.png"})
        result = _run(ProfileEnricher(provider).enrich(base, "tok"))
        assert result.name == "Ada Lovelace"
        assert result.avatar == "http://img/p.png"

    def test_network_failure_returns_base(self, base: Profile) -> None:
        """A failing profile fetch degrades to the base profile without raising."""
        provider = _provider(side_effect=httpx.ConnectError("unreachable"))
        result = _run(ProfileEnricher(provider).enrich(base, "tok"))
        assert result is base

    def test_fetch_error_returns_base(self, base: Profile) -> None:
        """ProfileFetchFailed is absorbed."""
        provider = _provider(side_effect=ProfileFetchFailed("bad"))
        result = _run(ProfileEnricher(provider).enrich(base, "tok"))
        assert result is base


class TestGoogleProfileProvider:
    """Tests for GoogleProfileProvider against a mock transport."""

    def test_fetch_profile(self) -> None:
        """The userinfo endpoint is called with a bearer token."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"name": "Ada", "picture": "http://img/p.png"})

        provider = GoogleProfileProvider(transport=httpx.MockTransport(handler))

        async def scenario() -> dict:
            try:
                return await provider.fetch_profile("tok")
            finally:
                await provider.close()

        data = _run(scenario())
        assert data == {"name": "Ada", "picture": "http://img/p.png"}
        assert seen[0].headers["Authorization"] == "Bearer tok"
        assert str(seen[0].url) == "https://www.googleapis.com/oauth2/v2/userinfo"

    def test_http_error(self) -> None:
        """Non-2xx responses raise ProfileFetchFailed."""
        provider = GoogleProfileProvider(
            transport=httpx.MockTransport(lambda request: httpx.Response(401))
        )
        with pytest.raises(ProfileFetchFailed):
            _run(provider.fetch_profile("expired"))

    def test_invalid_json(self) -> None:
        """Undecodable bodies raise ProfileFetchFailed."""
        provider = GoogleProfileProvider(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text="<html>"))
        )
        with pytest.raises(ProfileFetchFailed):
            _run(provider.fetch_profile("tok"))

    def test_non_object_json(self) -> None:
        """A JSON list is not a profile."""
        provider = GoogleProfileProvider(
            transport=httpx.MockTransport(lambda request: httpx.Response(200, json=[1, 2]))
        )
        with pytest.raises(ProfileFetchFailed):
            _run(provider.fetch_profile("tok"))

    def test_enricher_end_to_end(self) -> None:
        """Enricher plus provider degrade gracefully on a server error."""
        provider = GoogleProfileProvider(
            transport=httpx.MockTransport(lambda request: httpx.Response(503))
        )
        base = Profile(name="User", email="")
        assert _run(ProfileEnricher(provider).enrich(base, "tok")) is base
