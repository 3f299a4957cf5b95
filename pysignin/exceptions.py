"""pysignin exception hierarchy.

All sign-in failures inherit from SignInError, enabling catch-all handling
while supporting specific error types. Every variant carries just enough
context to explain the failure to a caller.
"""

from __future__ import annotations

from typing import Any


class SignInError(Exception):
    """Base exception for all pysignin errors."""

    def __init__(self, message: str, **context: Any) -> None:
        """Initialize sign-in exception.

        Parameters
        ----------
        message : str
            Human-readable error message.
        **context : Any
            Additional context (attempt_id, status_code, etc.).
        """
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        """Format exception with context."""
        if self.context:
            ctx = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} ({ctx})"
        return self.message


class MissingConfigurationError(SignInError):
    """No usable sign-in configuration.

    Raised when an operation needs a client configuration and none was
    set, or when the configured client ID does not follow the provider's
    application-suffix convention.
    """

    def __init__(
        self,
        message: str = "Google Sign-In configuration is missing",
        **context: Any,
    ) -> None:
        super().__init__(message, **context)


class MissingPresentationContextError(SignInError):
    """No presentation context was supplied to an interactive sign-in."""

    def __init__(
        self,
        message: str = "No presentation context available",
        **context: Any,
    ) -> None:
        super().__init__(message, **context)


class MissingCallbackSchemeError(SignInError):
    """The host has not registered the redirect URL scheme.

    Raised before any browser session starts, since an unregistered scheme
    means control can never return to the application.
    """

    def __init__(self, scheme: str, **context: Any) -> None:
        """Initialize missing scheme error.

        Parameters
        ----------
        scheme : str
            The callback URL scheme the host must register.
        **context : Any
            Additional context.
        """
        super().__init__(
            f"Required URL scheme '{scheme}' is not registered",
            scheme=scheme,
            **context,
        )
        self.scheme = scheme


class AuthenticationFailedError(SignInError):
    """The provider or the callback reported an authentication failure.

    Raised for provider-reported errors, state mismatches, and token
    responses that do not contain an access token.
    """

    def __init__(self, detail: str, **context: Any) -> None:
        """Initialize authentication failure.

        Parameters
        ----------
        detail : str
            Provider error description or local failure reason.
        **context : Any
            Additional context.
        """
        super().__init__(f"Authentication failed: {detail}", **context)
        self.detail = detail


class IdTokenValidationError(AuthenticationFailedError):
    """The identity token failed signature or claim validation."""


class InvalidResponseError(SignInError):
    """A redirect or token response could not be understood."""

    def __init__(self, message: str = "Invalid response from Google", **context: Any) -> None:
        super().__init__(message, **context)


class UserCancelledError(SignInError):
    """The user (or the application) cancelled the sign-in attempt.

    This is an expected outcome, not a system fault.
    """

    def __init__(self, message: str = "User cancelled sign-in", **context: Any) -> None:
        super().__init__(message, **context)


class NetworkError(SignInError):
    """A transport-level failure talking to the provider or the browser."""

    def __init__(self, cause: BaseException, **context: Any) -> None:
        """Initialize network error.

        Parameters
        ----------
        cause : BaseException
            The underlying transport exception.
        **context : Any
            Additional context.
        """
        super().__init__(f"Network error: {cause}", **context)
        self.cause = cause


class SignInInProgressError(SignInError):
    """A sign-in attempt is already outstanding on this client."""

    def __init__(
        self,
        message: str = "A sign-in attempt is already in progress",
        **context: Any,
    ) -> None:
        super().__init__(message, **context)
