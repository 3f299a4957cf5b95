"""Sign-in orchestrator.

``SignInClient`` runs one interactive Authorization Code + PKCE attempt at
a time: it generates the attempt secrets, presents the authorization URL
through a browser session gateway, validates the redirect, and exchanges
the code for tokens. It also refreshes and revokes tokens and, when a
token store is injected, persists results per account.

Results and errors are delivered to the awaiting coroutine, so they
arrive on the caller's event loop.
"""

# pylint: disable=logging-too-many-args,too-many-instance-attributes

from __future__ import annotations

import dataclasses
import logging
import secrets

from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from ..exceptions import (
    AuthenticationFailedError,
    MissingCallbackSchemeError,
    MissingConfigurationError,
    MissingPresentationContextError,
    NetworkError,
    SignInError,
    SignInInProgressError,
    UserCancelledError,
)
from ..types import AttemptState, BrowserOutcome, PendingAttempt, SignInResult
from .callback import validate_callback
from .gateway import SystemBrowserGateway
from .id_token import IdTokenVerifier, account_key_for
from .pkce import PKCEChallenge
from .request import build_authorization_url, callback_scheme_for, redirect_uri_for
from .token_service import TokenService
from .token_store import create_token_store


if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence

    from ..config import SignInConfiguration, SignInSettings
    from ..types import PresentationContext
    from .gateway import BrowserSessionGateway
    from .token_store import TokenStore


logger = logging.getLogger("pysignin.auth")


class SignInClient:
    """Orchestrates Google sign-in with Authorization Code + PKCE.

    Construct one per application (or per test); there is no shared
    instance.

    Parameters
    ----------
    configuration : SignInConfiguration, optional
        Client configuration. Operations that need it raise
        ``MissingConfigurationError`` until :meth:`configure` is called.
    gateway : BrowserSessionGateway, optional
        How authorization URLs are shown (default ``SystemBrowserGateway``).
    registered_schemes : Iterable[str]
        URL schemes the host application receives. The computed callback
        scheme must be among them (case-insensitive).
    token_service : TokenService, optional
        Token endpoint client.
    token_store : TokenStore, optional
        Where successful results are persisted, keyed by account.
    id_token_verifier : IdTokenVerifier, optional
        When given, identity tokens from a code exchange are verified
        (signature, issuer, audience, expiry, nonce) before the result
        is returned. Without it identity tokens are returned unverified.
    """

    def __init__(
        self,
        configuration: SignInConfiguration | None = None,
        gateway: BrowserSessionGateway | None = None,
        registered_schemes: Iterable[str] = (),
        token_service: TokenService | None = None,
        token_store: TokenStore | None = None,
        id_token_verifier: IdTokenVerifier | None = None,
    ) -> None:
        """Initialize the sign-in client."""
        self._configuration = configuration
        self.gateway = gateway or SystemBrowserGateway()
        self.registered_schemes = list(registered_schemes)
        self.token_service = token_service or TokenService()
        self.token_store = token_store
        self.id_token_verifier = id_token_verifier

        self._attempt: PendingAttempt | None = None
        self._flow_state = AttemptState.IDLE

    @classmethod
    def from_settings(
        cls,
        settings: SignInSettings | None = None,
        gateway: BrowserSessionGateway | None = None,
    ) -> SignInClient:
        """Build a client from ``SignInSettings``.

        Parameters
        ----------
        settings : SignInSettings, optional
            Settings to use (default: the cached ``get_settings()``).
        gateway : BrowserSessionGateway, optional
            Gateway to present with.

        Raises
        ------
        MissingConfigurationError
            If the settings hold no valid client ID.
        """
        if settings is None:
            from ..config import get_settings

            settings = get_settings()

        configuration = settings.to_configuration()
        verifier = None
        if settings.verify_id_token:
            verifier = IdTokenVerifier(
                configuration.client_id,
                extra_audiences=[configuration.server_client_id or ""],
                timeout=settings.http_timeout_seconds,
            )
        return cls(
            configuration=configuration,
            gateway=gateway,
            registered_schemes=settings.registered_schemes,
            token_service=TokenService(timeout=settings.http_timeout_seconds),
            token_store=create_token_store(
                settings.token_store_backend,
                service_name=settings.keyring_service_name,
            ),
            id_token_verifier=verifier,
        )

    # ── Configuration ───────────────────────────────────────────────

    @property
    def configuration(self) -> SignInConfiguration | None:
        """The current client configuration."""
        return self._configuration

    def configure(self, configuration: SignInConfiguration) -> None:
        """Replace the client configuration.

        An outstanding attempt is cancelled; its caller receives
        ``UserCancelledError``.
        """
        self.cancel()
        self._configuration = configuration

    def _require_configuration(self) -> SignInConfiguration:
        if self._configuration is None:
            raise MissingConfigurationError
        return self._configuration

    @property
    def callback_scheme(self) -> str:
        """URL scheme the provider redirects to (reversed client ID)."""
        return callback_scheme_for(self._require_configuration().client_id)

    @property
    def redirect_uri(self) -> str:
        """Redirect URI sent with authorization and token requests."""
        return redirect_uri_for(self._require_configuration().client_id)

    def has_registered_scheme(self) -> bool:
        """Check whether the host registered the callback scheme."""
        required = self.callback_scheme.lower()
        return any(scheme.lower() == required for scheme in self.registered_schemes)

    # ── Attempt state ───────────────────────────────────────────────

    @property
    def flow_state(self) -> AttemptState:
        """State of the most recent sign-in attempt."""
        return self._flow_state

    @property
    def has_pending_attempt(self) -> bool:
        """Whether an interactive sign-in is outstanding."""
        return self._attempt is not None

    def cancel(self) -> None:
        """Cancel the outstanding sign-in attempt, if any.

        The browser session is dismissed and the pending ``sign_in``
        call raises ``UserCancelledError``.
        """
        attempt = self._attempt
        if attempt is None or attempt.cancelled:
            return
        attempt.cancelled = True
        logger.info("Cancelling sign-in attempt %s", attempt.attempt_id)
        self.gateway.cancel()

    # ── Public operations ───────────────────────────────────────────

    async def sign_in(  # noqa: C901
        self,
        presentation_context: PresentationContext | None,
        hint: str | None = None,
        scopes: Sequence[str] | None = None,
    ) -> SignInResult:
        """Run an interactive sign-in.

        Parameters
        ----------
        presentation_context : PresentationContext
            Where the browser session is presented from.
        hint : str, optional
            Login hint (email address) to preselect an account.
        scopes : Sequence[str], optional
            Scopes to request (default: the configuration's scopes).

        Returns
        -------
        SignInResult
            Tokens for the signed-in user. ``nonce`` holds the value the
            identity token must carry.

        Raises
        ------
        MissingConfigurationError
            If the client is not configured.
        MissingPresentationContextError
            If no presentation context is given.
        MissingCallbackSchemeError
            If the host has not registered the callback scheme.
        SignInInProgressError
            If another attempt is outstanding.
        UserCancelledError
            If the user or the application cancelled.
        AuthenticationFailedError
            If the provider refused, the state did not match, or the
            identity token failed verification.
        InvalidResponseError
            If the redirect or token response was malformed.
        NetworkError
            If the browser session or token request failed in transport.
        """
        configuration = self._require_configuration()
        if presentation_context is None:
            raise MissingPresentationContextError
        scheme = callback_scheme_for(configuration.client_id)
        if not self.has_registered_scheme():
            raise MissingCallbackSchemeError(scheme)
        if self._attempt is not None:
            raise SignInInProgressError(attempt_id=self._attempt.attempt_id)

        pkce = PKCEChallenge.generate()
        attempt = PendingAttempt(
            attempt_id=secrets.token_hex(8),
            verifier=pkce.verifier,
            challenge=pkce.challenge,
            state=secrets.token_urlsafe(32),
            nonce=secrets.token_urlsafe(32),
            redirect_uri=redirect_uri_for(configuration.client_id),
            context=presentation_context,
        )
        self._attempt = attempt
        self._flow_state = AttemptState.IN_PROGRESS
        logger.info("Sign-in attempt %s started", attempt.attempt_id)

        try:
            authorization_url = build_authorization_url(
                configuration,
                scopes=list(scopes) if scopes is not None else configuration.scopes,
                challenge=attempt.challenge,
                state=attempt.state,
                nonce=attempt.nonce,
                login_hint=hint,
            )

            try:
                outcome = await self.gateway.present(
                    authorization_url, scheme, presentation_context
                )
            except OSError as exc:
                outcome = BrowserOutcome.failed(exc)

            if attempt.cancelled:
                raise UserCancelledError(attempt_id=attempt.attempt_id)  # noqa: TRY301
            code = validate_callback(outcome, attempt.state)

            response = await self.token_service.exchange_code(
                code,
                attempt.verifier,
                configuration.client_id,
                attempt.redirect_uri,
            )
            if attempt.cancelled:
                raise UserCancelledError(attempt_id=attempt.attempt_id)  # noqa: TRY301

            if self.id_token_verifier is not None and response.id_token:
                await self.id_token_verifier.verify(response.id_token, nonce=attempt.nonce)

            result = SignInResult(
                access_token=response.access_token,
                id_token=response.id_token,
                refresh_token=response.refresh_token,
                granted_scopes=response.scopes,
                nonce=attempt.nonce,
            )
            result = await self._persist(result)

        except UserCancelledError:
            self._flow_state = AttemptState.CANCELLED
            logger.info("Sign-in attempt %s cancelled", attempt.attempt_id)
            raise
        except SignInError as exc:
            self._flow_state = AttemptState.FAILED
            logger.warning("Sign-in attempt %s failed: %s", attempt.attempt_id, exc)
            raise
        except BaseException:
            self._flow_state = AttemptState.FAILED
            raise
        finally:
            if self._attempt is attempt:
                self._attempt = None

        self._flow_state = AttemptState.COMPLETED
        logger.info("Sign-in attempt %s completed", attempt.attempt_id)
        return result

    async def _persist(self, result: SignInResult) -> SignInResult:
        """Save a result under its account key when a store is configured."""
        if self.token_store is None:
            return result
        account = account_key_for(result.id_token)
        result = dataclasses.replace(result, account=account)
        await self.token_store.save(account, result)
        logger.debug("Saved tokens for account %s", account)
        return result

    async def refresh_tokens(self, refresh_token: str) -> SignInResult:
        """Obtain a fresh access token.

        Parameters
        ----------
        refresh_token : str
            A refresh token from an earlier sign-in.

        Returns
        -------
        SignInResult
            The refreshed tokens. ``refresh_token`` is the original one
            when the provider did not rotate it.

        Raises
        ------
        MissingConfigurationError, AuthenticationFailedError,
        InvalidResponseError, NetworkError
        """
        configuration = self._require_configuration()
        response = await self.token_service.refresh(refresh_token, configuration.client_id)
        logger.info("Access token refreshed")
        return SignInResult(
            access_token=response.access_token,
            id_token=response.id_token,
            refresh_token=response.refresh_token or refresh_token,
            granted_scopes=response.scopes,
        )

    async def restore_previous_sign_in(self, account: str = "default") -> SignInResult | None:
        """Load a stored sign-in, refreshing it if the access token expired.

        Parameters
        ----------
        account : str
            Account key the result was stored under.

        Returns
        -------
        SignInResult or None
            The usable stored result, or None when nothing is stored, the
            token expired without a refresh token, or the provider refused
            the refresh.

        Raises
        ------
        NetworkError
            If the refresh request failed in transport (worth retrying).
        """
        if self.token_store is None:
            return None
        stored = await self.token_store.load(account)
        if stored is None:
            return None
        if not stored.access_token.is_expired_at(self.token_service.clock()):
            return stored
        if not stored.refresh_token:
            logger.info("Stored tokens for %s expired without a refresh token", account)
            return None

        try:
            refreshed = await self.refresh_tokens(stored.refresh_token)
        except AuthenticationFailedError as exc:
            logger.warning("Refreshing stored tokens for %s failed: %s", account, exc)
            return None

        restored = dataclasses.replace(
            refreshed,
            id_token=refreshed.id_token or stored.id_token,
            granted_scopes=refreshed.granted_scopes or stored.granted_scopes,
            account=account,
        )
        await self.token_store.save(account, restored)
        return restored

    async def sign_out(
        self,
        access_token: str | None = None,
        account: str | None = None,
    ) -> SignInError | None:
        """Forget the session locally, revoking the token best-effort.

        Local state (the outstanding attempt and the stored account) is
        cleared even if revocation fails.

        Parameters
        ----------
        access_token : str, optional
            Token to revoke at the provider.
        account : str, optional
            Stored account to delete from the token store.

        Returns
        -------
        SignInError or None
            The revocation failure, if any.
        """
        self.cancel()
        error: SignInError | None = None
        try:
            if access_token:
                try:
                    accepted = await self.token_service.revoke(access_token)
                except NetworkError as exc:
                    error = exc
                else:
                    if not accepted:
                        error = AuthenticationFailedError("Token revocation was rejected")
        finally:
            if account and self.token_store is not None:
                await self.token_store.delete(account)
            self._flow_state = AttemptState.IDLE

        if error is not None:
            logger.warning("Signed out locally; revocation failed: %s", error)
        else:
            logger.info("Signed out")
        return error

    def handle_redirect(self, url: str) -> bool:
        """Offer an inbound URL from the host application.

        Parameters
        ----------
        url : str
            A URL the operating system delivered to the host.

        Returns
        -------
        bool
            True if the URL uses this client's callback scheme and belongs
            to the sign-in flow; False if the host should handle it elsewhere.
        """
        if self._configuration is None:
            return False
        try:
            url_scheme = urlsplit(url).scheme
        except ValueError:
            return False
        if url_scheme.lower() != self.callback_scheme.lower():
            return False
        if not self.gateway.resume(url):
            logger.debug("Callback URL received with no browser session waiting")
        return True

    async def close(self) -> None:
        """Release HTTP resources. Call from app shutdown lifecycle."""
        await self.token_service.close()
