"""Fixed Google OAuth 2.0 / OpenID Connect endpoints."""

from __future__ import annotations


AUTHORIZATION_ENDPOINT = "https://accounts.google.com/o/oauth2/v2/auth"
TOKEN_ENDPOINT = "https://oauth2.googleapis.com/token"  # noqa: S105
REVOCATION_ENDPOINT = "https://oauth2.googleapis.com/revoke"
JWKS_ENDPOINT = "https://www.googleapis.com/oauth2/v3/certs"

ID_TOKEN_ISSUERS = ("https://accounts.google.com", "accounts.google.com")

CALLBACK_SCHEME_PREFIX = "com.googleusercontent.apps"
CALLBACK_PATH = "/oauth2callback"
