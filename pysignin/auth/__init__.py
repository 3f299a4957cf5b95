"""OAuth2 Authorization Code + PKCE sign-in for Google.

Provides the sign-in orchestrator, browser session gateways, token
endpoint client, identity-token handling and token storage.
"""

from __future__ import annotations

from .client import SignInClient
from .gateway import BrowserSessionGateway, ConsoleBrowserGateway, SystemBrowserGateway
from .id_token import IdTokenVerifier, account_key_for, decode_id_token_claims
from .pkce import PKCEChallenge
from .request import build_authorization_url, callback_scheme_for, redirect_uri_for
from .token_service import TokenResponse, TokenService
from .token_store import (
    KeyringTokenStore,
    MemoryTokenStore,
    TokenStore,
    create_token_store,
)


__all__ = [
    "BrowserSessionGateway",
    "ConsoleBrowserGateway",
    "IdTokenVerifier",
    "KeyringTokenStore",
    "MemoryTokenStore",
    "PKCEChallenge",
    "SignInClient",
    "SystemBrowserGateway",
    "TokenResponse",
    "TokenService",
    "TokenStore",
    "account_key_for",
    "build_authorization_url",
    "callback_scheme_for",
    "create_token_store",
    "decode_id_token_claims",
    "redirect_uri_for",
]
