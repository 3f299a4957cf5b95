"""Authorization request construction.

Derives the reversed-client-ID redirect URI and assembles the provider's
authorization URL with PKCE and anti-forgery parameters.
"""

from __future__ import annotations

from typing import TYPE_CHECKING
from urllib.parse import quote, urlencode

from ..config import CLIENT_ID_SUFFIX
from ..exceptions import InvalidResponseError, MissingConfigurationError
from .endpoints import AUTHORIZATION_ENDPOINT, CALLBACK_PATH, CALLBACK_SCHEME_PREFIX


if TYPE_CHECKING:
    from collections.abc import Sequence

    from ..config import SignInConfiguration


def callback_scheme_for(client_id: str) -> str:
    """Return the reversed-client-ID URL scheme for a client.

    ``1234-abc.apps.googleusercontent.com`` maps to
    ``com.googleusercontent.apps.1234-abc``.

    Raises
    ------
    MissingConfigurationError
        If the client ID does not end with the application suffix.
    """
    prefix = client_id[: -len(CLIENT_ID_SUFFIX)] if client_id.endswith(CLIENT_ID_SUFFIX) else ""
    if not prefix:
        msg = f"Invalid client ID format. Expected format: YOUR_CLIENT_ID{CLIENT_ID_SUFFIX}"
        raise MissingConfigurationError(msg, client_id=client_id)
    return f"{CALLBACK_SCHEME_PREFIX}.{prefix}"


def redirect_uri_for(client_id: str) -> str:
    """Return the redirect URI registered for a client."""
    return f"{callback_scheme_for(client_id)}:{CALLBACK_PATH}"


def build_authorization_url(
    configuration: SignInConfiguration,
    scopes: Sequence[str],
    challenge: str,
    state: str,
    nonce: str,
    login_hint: str | None = None,
) -> str:
    """Build the full authorization URL.

    Parameters
    ----------
    configuration : SignInConfiguration
        The client configuration.
    scopes : Sequence[str]
        Scopes to request, in order.
    challenge : str
        S256 code challenge derived from the attempt's verifier.
    state : str
        Anti-forgery token echoed back in the redirect.
    nonce : str
        Value the provider embeds in the identity token.
    login_hint : str, optional
        Email or account ID to preselect.

    Returns
    -------
    str
        The authorization URL to present in the browser.

    Raises
    ------
    InvalidResponseError
        If no scopes are given, leaving no valid request to build.
    """
    if not scopes:
        msg = "Cannot build an authorization request without scopes"
        raise InvalidResponseError(msg)

    params: dict[str, str] = {
        "client_id": configuration.client_id,
        "redirect_uri": redirect_uri_for(configuration.client_id),
        "response_type": "code",
        "scope": " ".join(scopes),
        "code_challenge": challenge,
        "code_challenge_method": "S256",
        "state": state,
        "nonce": nonce,
        "include_granted_scopes": "true",
        "access_type": "offline",
    }
    if login_hint:
        params["login_hint"] = login_hint
    if configuration.hosted_domain:
        params["hd"] = configuration.hosted_domain
    return f"{AUTHORIZATION_ENDPOINT}?{urlencode(params, quote_via=quote)}"
