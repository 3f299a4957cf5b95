"""Test doubles for the HTTP layer and the browser session gateway."""

from __future__ import annotations

import json

from base64 import urlsafe_b64encode
from typing import Any
from unittest.mock import AsyncMock, MagicMock
from urllib.parse import parse_qs, urlencode, urlsplit

from pysignin.auth.gateway import BrowserSessionGateway
from pysignin.types import BrowserOutcome

from tests.constants import AUTH_CODE


def make_response(body: Any, status_code: int = 200) -> MagicMock:
    """Create a mock httpx response with a JSON body."""
    resp = MagicMock()
    resp.status_code = status_code
    resp.is_success = 200 <= status_code < 300
    if isinstance(body, Exception):
        resp.json.side_effect = body
    else:
        resp.json.return_value = body
    return resp


def make_http_client(*responses: Any) -> AsyncMock:
    """Create a mock httpx.AsyncClient whose POSTs return ``responses`` in order."""
    client = AsyncMock()
    client.post.side_effect = list(responses)
    return client


def token_body(**overrides: Any) -> dict[str, Any]:
    """Build a token endpoint success body."""
    body: dict[str, Any] = {
        "access_token": "ya29.test-access",
        "expires_in": 3599,
        "refresh_token": "1//test-refresh",
        "scope": "openid email profile",
        "token_type": "Bearer",
    }
    body.update(overrides)
    return {k: v for k, v in body.items() if v is not None}


def _b64(data: dict[str, Any]) -> str:
    return urlsafe_b64encode(json.dumps(data).encode()).rstrip(b"=").decode()


def make_unsigned_id_token(**claims: Any) -> str:
    """Create a JWT-shaped string with the given claims and no valid signature."""
    return f"{_b64({'alg': 'RS256', 'typ': 'JWT'})}.{_b64(claims)}.c2lnbmF0dXJl"


def query_of(url: str) -> dict[str, str]:
    """Return the single-valued query parameters of a URL."""
    return {k: v[0] for k, v in parse_qs(urlsplit(url).query).items()}


def redirect_for(authorization_url: str, scheme: str, **params: str | None) -> str:
    """Build the redirect the provider would send for an authorization URL.

    Echoes the request's state unless ``state`` is given; adds the test
    authorization code unless ``code`` is given.
    """
    query: dict[str, str | None] = {
        "state": query_of(authorization_url)["state"],
        "code": AUTH_CODE,
    }
    query.update(params)
    filtered = {k: v for k, v in query.items() if v is not None}
    return f"{scheme}:/oauth2callback?{urlencode(filtered)}"


class ScriptedGateway(BrowserSessionGateway):
    """Gateway that answers ``present`` from a script instead of a browser.

    Parameters
    ----------
    respond : callable
        Called with the authorization URL and callback scheme; returns the
        outcome to resolve with. Defaults to a successful redirect.
    """

    def __init__(self, respond=None) -> None:
        self.respond = respond or self._redirect
        self.presented: list[tuple[str, str]] = []
        self.cancel_calls = 0

    async def present(self, url, callback_scheme, context):
        self.presented.append((url, callback_scheme))
        return self.respond(url, callback_scheme)

    def cancel(self) -> None:
        self.cancel_calls += 1

    @staticmethod
    def _redirect(url: str, scheme: str) -> BrowserOutcome:
        return BrowserOutcome.redirected(redirect_for(url, scheme))
