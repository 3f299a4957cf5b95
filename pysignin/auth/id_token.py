"""Identity token (OpenID Connect JWT) handling.

``decode_id_token_claims`` reads claims for display only; nothing it
returns is authenticated. ``IdTokenVerifier`` checks the signature
against Google's published keys plus issuer, audience, expiry and nonce,
and is the only way claims should be trusted.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import logging

from typing import TYPE_CHECKING, Any

import httpx

from authlib.common.encoding import json_loads, to_bytes, urlsafe_b64decode
from authlib.jose import JsonWebKey, JsonWebToken
from authlib.jose.errors import JoseError

from ..exceptions import IdTokenValidationError, InvalidResponseError, NetworkError
from .endpoints import ID_TOKEN_ISSUERS, JWKS_ENDPOINT


if TYPE_CHECKING:
    from collections.abc import Iterable


logger = logging.getLogger("pysignin.auth")


def decode_id_token_claims(id_token: str) -> dict[str, Any]:
    """Decode the payload of an identity token WITHOUT verifying it.

    Parameters
    ----------
    id_token : str
        The raw JWT.

    Returns
    -------
    dict[str, Any]
        The unverified claims. Suitable for display, not for authorization.

    Raises
    ------
    InvalidResponseError
        If the token is not a well-formed JWT.
    """
    parts = id_token.split(".")
    if len(parts) != 3:  # noqa: PLR2004
        raise InvalidResponseError("Identity token is not a JWT")
    try:
        claims = json_loads(urlsafe_b64decode(to_bytes(parts[1])))
    except (ValueError, TypeError) as exc:
        raise InvalidResponseError("Identity token payload could not be decoded") from exc
    if not isinstance(claims, dict):
        raise InvalidResponseError("Identity token payload is not a JSON object")
    return claims


def account_key_for(id_token: str | None) -> str:
    """Pick the token-store key for a signed-in account.

    Uses the subject claim, then email, then ``"default"``.
    """
    if not id_token:
        return "default"
    try:
        claims = decode_id_token_claims(id_token)
    except InvalidResponseError:
        return "default"
    return str(claims.get("sub") or claims.get("email") or "default")


class IdTokenVerifier:
    """Verify Google identity tokens.

    Parameters
    ----------
    client_id : str
        OAuth client ID the token must be issued to.
    extra_audiences : Iterable[str], optional
        Further accepted audiences (e.g. the server client ID).
    jwks_url : str
        Where the signing keys are published.
    issuers : Iterable[str]
        Accepted ``iss`` values.
    timeout : float
        Timeout for fetching the key set.
    """

    def __init__(
        self,
        client_id: str,
        extra_audiences: Iterable[str] = (),
        jwks_url: str = JWKS_ENDPOINT,
        issuers: Iterable[str] = ID_TOKEN_ISSUERS,
        timeout: float = 10.0,
    ) -> None:
        """Initialize the verifier."""
        self.audiences = [client_id, *(a for a in extra_audiences if a)]
        self.jwks_url = jwks_url
        self.issuers = list(issuers)
        self.timeout = timeout
        self._jwks_data: dict[str, Any] | None = None

    async def _fetch_jwks(self) -> dict[str, Any]:
        """Fetch (and cache) the JWKS key set."""
        if self._jwks_data is not None:
            return self._jwks_data
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.get(self.jwks_url)
                resp.raise_for_status()
                data = resp.json()
        except httpx.HTTPError as exc:
            raise NetworkError(exc) from exc
        except ValueError as exc:
            raise InvalidResponseError("Signing key set is not JSON") from exc
        self._jwks_data = data
        return data

    def clear_cache(self) -> None:
        """Forget the cached key set (e.g. after key rotation)."""
        self._jwks_data = None

    async def verify(self, id_token: str, nonce: str | None = None) -> dict[str, Any]:
        """Validate an identity token.

        Parameters
        ----------
        id_token : str
            The raw JWT.
        nonce : str, optional
            Expected ``nonce`` claim (the attempt's nonce).

        Returns
        -------
        dict[str, Any]
            The validated claims.

        Raises
        ------
        IdTokenValidationError
            If the signature or any claim check fails.
        NetworkError
            If the key set cannot be fetched.
        """
        jwks_data = await self._fetch_jwks()
        jwt = JsonWebToken(["RS256"])

        claims_options: dict[str, Any] = {
            "iss": {"essential": True, "values": self.issuers},
            "aud": {"essential": True, "values": self.audiences},
            "exp": {"essential": True},
        }
        if nonce:
            claims_options["nonce"] = {"essential": True, "value": nonce}

        try:
            key_set = JsonWebKey.import_key_set(jwks_data)
            claims = jwt.decode(id_token, key_set, claims_options=claims_options)
            claims.validate()
        except (JoseError, ValueError) as exc:
            logger.warning("Identity token rejected: %s", exc)
            msg = f"ID token validation failed: {exc}"
            raise IdTokenValidationError(msg) from exc

        return dict(claims)
