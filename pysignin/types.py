"""Value types shared across the sign-in flow."""

from __future__ import annotations

import time

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


@dataclass(frozen=True)
class Token:
    """A bearer credential with an optional absolute expiry.

    Attributes
    ----------
    token : str
        The bearer string.
    expires_at : float or None
        UNIX timestamp after which the token is no longer valid, or
        None when the provider did not state a lifetime.
    """

    token: str
    expires_at: float | None = None

    def is_expired_at(self, now: float) -> bool:
        """Check expiry against an explicit instant."""
        if self.expires_at is None:
            return False
        return self.expires_at <= now

    @property
    def is_expired(self) -> bool:
        """Check if the token has expired."""
        return self.is_expired_at(time.time())


@dataclass(frozen=True)
class SignInResult:
    """Tokens produced by a successful code exchange or refresh.

    Attributes
    ----------
    access_token : Token
        The access token for API requests.
    id_token : str or None
        The raw OpenID Connect identity token (JWT), if issued.
    refresh_token : str or None
        Long-lived credential for obtaining new access tokens.
    granted_scopes : list[str]
        Scopes the provider reports as granted, in response order.
    nonce : str or None
        The nonce sent with the authorization request. Callers decoding
        ``id_token`` must compare it to the token's ``nonce`` claim.
        None for results produced by a refresh.
    account : str or None
        Key the result was stored under, when a token store is in use.
    """

    access_token: Token
    id_token: str | None = None
    refresh_token: str | None = None
    granted_scopes: list[str] = field(default_factory=list)
    nonce: str | None = None
    account: str | None = None


@dataclass(frozen=True)
class PresentationContext:
    """Capability handle identifying where interactive UI may be shown.

    Sessions are never ephemeral: the browser shares cookies with the
    user's normal session, so an already signed-in account is offered.

    Attributes
    ----------
    anchor : Any
        Opaque host object (window handle, console, etc.) the gateway
        presents from. Never retained after the attempt resolves.
    """

    anchor: Any = None


@dataclass
class PendingAttempt:
    """Per-attempt secrets and bookkeeping for one interactive sign-in.

    Exists only until the attempt resolves. ``verifier`` never leaves the
    process except in the token request.
    """

    attempt_id: str
    verifier: str
    challenge: str
    state: str
    nonce: str
    redirect_uri: str
    context: PresentationContext
    cancelled: bool = False


class BrowserOutcomeKind(str, Enum):
    """How a browser session ended."""

    REDIRECT = "redirect"
    CANCELLED = "cancelled"
    ERROR = "error"


@dataclass(frozen=True)
class BrowserOutcome:
    """Result of presenting an authorization URL in a browser session.

    Attributes
    ----------
    kind : BrowserOutcomeKind
        Whether the session redirected, was cancelled, or failed.
    url : str or None
        The redirect URL, for ``REDIRECT`` outcomes.
    error : BaseException or None
        The transport error, for ``ERROR`` outcomes.
    """

    kind: BrowserOutcomeKind
    url: str | None = None
    error: BaseException | None = None

    @classmethod
    def redirected(cls, url: str) -> BrowserOutcome:
        """Outcome for a captured redirect URL."""
        return cls(BrowserOutcomeKind.REDIRECT, url=url)

    @classmethod
    def cancelled(cls) -> BrowserOutcome:
        """Outcome for a user or application cancellation."""
        return cls(BrowserOutcomeKind.CANCELLED)

    @classmethod
    def failed(cls, error: BaseException) -> BrowserOutcome:
        """Outcome for a transport failure."""
        return cls(BrowserOutcomeKind.ERROR, error=error)


class AttemptState(str, Enum):
    """State of the sign-in client's most recent attempt."""

    IDLE = "idle"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"
