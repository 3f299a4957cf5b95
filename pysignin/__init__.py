"""pysignin - Google sign-in for Python applications.

Runs the OAuth 2.0 Authorization Code flow with PKCE through the user's
browser, exchanges the authorization code for tokens, and refreshes and
revokes them afterwards.
"""

from __future__ import annotations

from .auth import (
    BrowserSessionGateway,
    ConsoleBrowserGateway,
    IdTokenVerifier,
    SignInClient,
    SystemBrowserGateway,
    TokenService,
)
from .config import SignInConfiguration, SignInSettings, get_settings
from .exceptions import (
    AuthenticationFailedError,
    IdTokenValidationError,
    InvalidResponseError,
    MissingCallbackSchemeError,
    MissingConfigurationError,
    MissingPresentationContextError,
    NetworkError,
    SignInError,
    SignInInProgressError,
    UserCancelledError,
)
from .log import enable_debug, get_logger, set_level
from .types import AttemptState, PresentationContext, SignInResult, Token


__version__ = "0.1.0"

__all__ = [
    "AttemptState",
    "AuthenticationFailedError",
    "BrowserSessionGateway",
    "ConsoleBrowserGateway",
    "IdTokenValidationError",
    "IdTokenVerifier",
    "InvalidResponseError",
    "MissingCallbackSchemeError",
    "MissingConfigurationError",
    "MissingPresentationContextError",
    "NetworkError",
    "PresentationContext",
    "SignInClient",
    "SignInConfiguration",
    "SignInError",
    "SignInInProgressError",
    "SignInResult",
    "SignInSettings",
    "SystemBrowserGateway",
    "Token",
    "TokenService",
    "UserCancelledError",
    "__version__",
    "enable_debug",
    "get_logger",
    "set_level",
]
