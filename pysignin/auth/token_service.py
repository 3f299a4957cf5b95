"""Token endpoint calls: code exchange, refresh, and revocation.

Each operation is a single form-encoded POST. Google reports grant errors
as JSON bodies with a 4xx status, so responses are parsed regardless of
status and the presence of ``access_token`` decides success.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import logging
import time

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import httpx

from ..exceptions import AuthenticationFailedError, InvalidResponseError, NetworkError
from ..log import redact_sensitive_data
from ..types import Token
from .endpoints import REVOCATION_ENDPOINT, TOKEN_ENDPOINT


if TYPE_CHECKING:
    from collections.abc import Callable


logger = logging.getLogger("pysignin.auth")

DEFAULT_EXPIRES_IN = 3600.0


@dataclass(frozen=True)
class TokenResponse:
    """Parsed token endpoint response.

    Attributes
    ----------
    access_token : Token
        The access token with its absolute expiry.
    id_token : str or None
        The raw identity token, if issued.
    refresh_token : str or None
        A refresh token, if issued (refresh responses usually omit it).
    scopes : list[str]
        Granted scopes, split from the space-delimited ``scope`` field.
    """

    access_token: Token
    id_token: str | None = None
    refresh_token: str | None = None
    scopes: list[str] = field(default_factory=list)


class TokenService:
    """Client for the provider's token and revocation endpoints.

    Parameters
    ----------
    timeout : float
        Request timeout in seconds for the shared HTTP client.
    clock : callable, optional
        Returns the current UNIX time; used to turn ``expires_in`` into
        an absolute expiry (default ``time.time``).
    http_client : httpx.AsyncClient, optional
        Client to use instead of a lazily created one. Not closed by
        :meth:`close`.
    token_url : str
        Token endpoint (code exchange and refresh).
    revocation_url : str
        Revocation endpoint (RFC 7009).
    """

    def __init__(
        self,
        timeout: float = 30.0,
        clock: Callable[[], float] | None = None,
        http_client: httpx.AsyncClient | None = None,
        token_url: str = TOKEN_ENDPOINT,
        revocation_url: str = REVOCATION_ENDPOINT,
    ) -> None:
        """Initialize the token service."""
        self.timeout = timeout
        self.clock = clock or time.time
        self.token_url = token_url
        self.revocation_url = revocation_url
        self._external_client = http_client
        self._http_client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the shared HTTP client."""
        if self._external_client is not None:
            return self._external_client
        if self._http_client is None or self._http_client.is_closed:
            self._http_client = httpx.AsyncClient(timeout=self.timeout)
        return self._http_client

    async def close(self) -> None:
        """Close the owned HTTP client. Call from app shutdown lifecycle."""
        if self._http_client is not None and not self._http_client.is_closed:
            await self._http_client.aclose()
        self._http_client = None

    async def exchange_code(
        self,
        code: str,
        verifier: str,
        client_id: str,
        redirect_uri: str,
    ) -> TokenResponse:
        """Exchange an authorization code for tokens.

        The code is single-use; a failed exchange is never retried here.

        Parameters
        ----------
        code : str
            The authorization code from the redirect.
        verifier : str
            The PKCE code verifier of the attempt that obtained ``code``.
        client_id : str
            The OAuth client ID.
        redirect_uri : str
            The redirect URI used in the authorization request.

        Returns
        -------
        TokenResponse
            The parsed token response.

        Raises
        ------
        NetworkError
            If the request fails at the transport level.
        InvalidResponseError
            If the response body is not a JSON object.
        AuthenticationFailedError
            If the response carries no access token.
        """
        data = {
            "code": code,
            "client_id": client_id,
            "code_verifier": verifier,
            "grant_type": "authorization_code",
            "redirect_uri": redirect_uri,
        }
        raw = await self._post_form(self.token_url, data)
        return self._parse_token_response(raw)

    async def refresh(self, refresh_token: str, client_id: str) -> TokenResponse:
        """Obtain a new access token with a refresh token.

        The provider may not rotate refresh tokens; ``refresh_token`` in
        the result is None when the response omits it, and callers keep
        the one they sent.

        Raises
        ------
        NetworkError, InvalidResponseError, AuthenticationFailedError
            As for :meth:`exchange_code`.
        """
        data = {
            "refresh_token": refresh_token,
            "client_id": client_id,
            "grant_type": "refresh_token",
        }
        raw = await self._post_form(self.token_url, data)
        return self._parse_token_response(raw)

    async def revoke(self, token: str) -> bool:
        """Revoke an access or refresh token.

        Returns
        -------
        bool
            True if the provider accepted the revocation.

        Raises
        ------
        NetworkError
            If the request fails at the transport level.
        """
        try:
            client = await self._get_client()
            resp = await client.post(self.revocation_url, data={"token": token})
        except httpx.HTTPError as exc:
            raise NetworkError(exc) from exc
        if not resp.is_success:
            logger.warning("Token revocation rejected with HTTP %s", resp.status_code)
        return resp.is_success

    async def _post_form(self, url: str, data: dict[str, str]) -> dict[str, Any]:
        """POST a form body and decode the JSON object response."""
        try:
            client = await self._get_client()
            resp = await client.post(url, data=data, headers={"Accept": "application/json"})
        except httpx.HTTPError as exc:
            raise NetworkError(exc) from exc

        try:
            raw = resp.json()
        except ValueError as exc:
            raise InvalidResponseError(status_code=resp.status_code) from exc
        if not isinstance(raw, dict):
            raise InvalidResponseError(status_code=resp.status_code)

        logger.debug(
            "Token endpoint responded %s: %s",
            resp.status_code,
            redact_sensitive_data(raw),
        )
        return raw

    def _parse_token_response(self, raw: dict[str, Any]) -> TokenResponse:
        """Build a TokenResponse, or raise for a response without a token."""
        access_token = raw.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            description = raw.get("error_description")
            detail = description if isinstance(description, str) else "Unknown error"
            context = {"error": raw["error"]} if raw.get("error") else {}
            raise AuthenticationFailedError(detail, **context)

        expires_in = raw.get("expires_in")
        if isinstance(expires_in, bool) or not isinstance(expires_in, (int, float)):
            expires_in = DEFAULT_EXPIRES_IN

        id_token = raw.get("id_token")
        refresh_token = raw.get("refresh_token")
        scope = raw.get("scope")

        return TokenResponse(
            access_token=Token(access_token, expires_at=self.clock() + float(expires_in)),
            id_token=id_token if isinstance(id_token, str) else None,
            refresh_token=refresh_token if isinstance(refresh_token, str) else None,
            scopes=scope.split() if isinstance(scope, str) else [],
        )
