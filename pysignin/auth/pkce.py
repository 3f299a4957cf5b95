"""PKCE (Proof Key for Code Exchange) implementation.

RFC 7636 - Proof Key for Code Exchange for OAuth 2.0 public clients.
Uses S256 challenge method (SHA-256 hash of the code verifier).

Verifiers and challenges are never logged.
"""

from __future__ import annotations

import hashlib
import secrets

from base64 import urlsafe_b64encode
from dataclasses import dataclass

from ..exceptions import AuthenticationFailedError


# 32 bytes encode to 43 characters, 96 bytes to 128 (RFC 7636 §4.1 bounds)
MIN_VERIFIER_BYTES = 32
MAX_VERIFIER_BYTES = 96


def generate_verifier(num_bytes: int = MIN_VERIFIER_BYTES) -> str:
    """Generate a high-entropy code verifier.

    Parameters
    ----------
    num_bytes : int
        Bytes of secure random data to encode (32-96, default 32).

    Returns
    -------
    str
        Unpadded URL-safe base64 string of 43-128 characters.

    Raises
    ------
    ValueError
        If ``num_bytes`` is outside the allowed range.
    AuthenticationFailedError
        If the platform cannot supply secure randomness.
    """
    if not MIN_VERIFIER_BYTES <= num_bytes <= MAX_VERIFIER_BYTES:
        msg = f"num_bytes must be between {MIN_VERIFIER_BYTES} and {MAX_VERIFIER_BYTES}"
        raise ValueError(msg)
    try:
        # token_urlsafe already strips "=" padding
        return secrets.token_urlsafe(num_bytes)
    except (OSError, NotImplementedError) as exc:
        msg = "Unable to obtain secure random data"
        raise AuthenticationFailedError(msg) from exc


def derive_challenge(verifier: str) -> str:
    """Compute the S256 code challenge for a verifier.

    Parameters
    ----------
    verifier : str
        The code verifier.

    Returns
    -------
    str
        Base64url-encoded SHA-256 digest of the UTF-8 verifier, unpadded.
    """
    digest = hashlib.sha256(verifier.encode("utf-8")).digest()
    return urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


@dataclass(frozen=True)
class PKCEChallenge:
    """PKCE code verifier and challenge pair.

    Attributes
    ----------
    verifier : str
        The code verifier (high-entropy random string). Sent only to the
        token endpoint.
    challenge : str
        The code challenge sent in the authorization request.
    method : str
        The challenge method, always "S256".
    """

    verifier: str
    challenge: str
    method: str = "S256"

    @classmethod
    def generate(cls, num_bytes: int = MIN_VERIFIER_BYTES) -> PKCEChallenge:
        """Generate a new PKCE code verifier and challenge.

        Parameters
        ----------
        num_bytes : int
            Number of random bytes behind the verifier (default 32).

        Returns
        -------
        PKCEChallenge
            A new PKCE challenge pair.
        """
        verifier = generate_verifier(num_bytes)
        return cls(verifier=verifier, challenge=derive_challenge(verifier))
