"""Validation of the browser session's redirect.

Turns a gateway outcome into an authorization code, or the matching
sign-in error. The state comparison is what rejects forged or stale
redirects, so any doubt fails closed.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import logging
import secrets

from urllib.parse import parse_qsl, urlsplit

from ..exceptions import (
    AuthenticationFailedError,
    InvalidResponseError,
    NetworkError,
    UserCancelledError,
)
from ..types import BrowserOutcome, BrowserOutcomeKind


logger = logging.getLogger("pysignin.auth")


def parse_callback_params(url: str | None) -> dict[str, str]:
    """Parse the query parameters of a redirect URL.

    Parameters with an empty value are dropped after the repeat check.

    Raises
    ------
    InvalidResponseError
        If the URL is missing, malformed, has no query, or repeats a
        parameter.
    """
    if not url:
        raise InvalidResponseError("Redirect URL is missing")
    try:
        query = urlsplit(url).query
        pairs = parse_qsl(query, keep_blank_values=True)
    except ValueError as exc:
        raise InvalidResponseError("Redirect URL could not be parsed") from exc
    if not pairs:
        raise InvalidResponseError("Redirect URL has no query parameters")

    params: dict[str, str] = {}
    for name, value in pairs:
        if name in params:
            raise InvalidResponseError("Redirect URL repeats a parameter", parameter=name)
        params[name] = value
    return {name: value for name, value in params.items() if value}


def validate_callback(outcome: BrowserOutcome, expected_state: str) -> str:
    """Validate a browser session outcome and extract the authorization code.

    Parameters
    ----------
    outcome : BrowserOutcome
        What the browser session gateway resolved with.
    expected_state : str
        The state token generated for this attempt.

    Returns
    -------
    str
        The authorization code.

    Raises
    ------
    UserCancelledError
        If the session was cancelled.
    NetworkError
        If the session failed at the transport level.
    InvalidResponseError
        If the redirect is malformed or carries no code.
    AuthenticationFailedError
        If the provider reported an error or the state does not match.
    """
    if outcome.kind is BrowserOutcomeKind.CANCELLED:
        logger.info("Sign-in cancelled before a redirect was received")
        raise UserCancelledError

    if outcome.kind is BrowserOutcomeKind.ERROR:
        cause = outcome.error or RuntimeError("browser session failed")
        raise NetworkError(cause) from outcome.error

    params = parse_callback_params(outcome.url)

    error = params.get("error")
    if error:
        raise AuthenticationFailedError(params.get("error_description") or error, error=error)

    returned_state = params.get("state", "")
    if not secrets.compare_digest(returned_state.encode(), expected_state.encode()):
        logger.warning("Rejected redirect with mismatched state")
        raise AuthenticationFailedError("State mismatch")

    code = params.get("code")
    if not code:
        raise InvalidResponseError("Redirect URL carries no authorization code")
    return code
