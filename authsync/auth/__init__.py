"""Delegated-login building blocks.

Callback parsing, token expiry policy, identity lookup, profile
enrichment, session establishment, external agents and the flow that
ties them together.
"""

from __future__ import annotations

from .agent import BrowserAgent, ExternalAgent
from .callback import parse_callback_url
from .callback_server import CallbackServer
from .expiry import DEFAULT_LOOKAHEAD, is_expired_or_expiring_soon, parse_timestamp
from .flow import OAuthFlowInitiator, build_redirect_uri, callback_error
from .identities import IdentityTokenResolver, find_provider_identity
from .profile import GoogleProfileProvider, ProfileEnricher, ProfileProvider
from .session import SessionEstablisher


__all__ = [
    "DEFAULT_LOOKAHEAD",
    "BrowserAgent",
    "CallbackServer",
    "ExternalAgent",
    "GoogleProfileProvider",
    "IdentityTokenResolver",
    "OAuthFlowInitiator",
    "ProfileEnricher",
    "ProfileProvider",
    "SessionEstablisher",
    "build_redirect_uri",
    "callback_error",
    "find_provider_identity",
    "is_expired_or_expiring_soon",
    "parse_callback_url",
    "parse_timestamp",
]
