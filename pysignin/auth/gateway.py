"""Browser session gateways.

A gateway opens the authorization URL in a browser the user trusts and
resolves, exactly once per ``present`` call, with the redirect URL, a
cancellation, or a transport error. The sign-in client only depends on
the ``BrowserSessionGateway`` contract; hosts with their own browser
integration implement it directly.
"""

# pylint: disable=logging-too-many-args

from __future__ import annotations

import asyncio
import logging
import sys
import webbrowser

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

from ..types import BrowserOutcome, PresentationContext


if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import TextIO


logger = logging.getLogger("pysignin.auth")


def _scheme_matches(url: str, scheme: str) -> bool:
    try:
        return urlsplit(url).scheme.lower() == scheme.lower()
    except ValueError:
        return False


class BrowserSessionGateway(ABC):
    """Contract for presenting an authorization URL to the user."""

    @abstractmethod
    async def present(
        self,
        url: str,
        callback_scheme: str,
        context: PresentationContext,
    ) -> BrowserOutcome:
        """Show ``url`` and wait for the session to end.

        Parameters
        ----------
        url : str
            The authorization URL.
        callback_scheme : str
            Only redirects with this scheme may complete the session.
        context : PresentationContext
            Where the session should be presented from.

        Returns
        -------
        BrowserOutcome
            The redirect, a cancellation, or a transport error.
        """

    @abstractmethod
    def cancel(self) -> None:
        """Cancel the outstanding session; ``present`` resolves as cancelled."""

    def resume(self, url: str) -> bool:
        """Offer an inbound redirect URL to the outstanding session.

        Returns
        -------
        bool
            True if the URL completed the session.
        """
        return False


class SystemBrowserGateway(BrowserSessionGateway):
    """Open the system browser and wait for the host to dispatch the redirect.

    The host application receives the ``<callback_scheme>:`` URL from the
    operating system and forwards it to ``SignInClient.handle_redirect``,
    which hands it to :meth:`resume`. ``resume`` and ``cancel`` may be
    called from any thread.

    Parameters
    ----------
    opener : callable, optional
        Function that opens a URL and returns whether it succeeded
        (default ``webbrowser.open``).
    """

    def __init__(self, opener: Callable[[str], bool] | None = None) -> None:
        """Initialize the gateway."""
        self._opener = opener or webbrowser.open
        self._loop: asyncio.AbstractEventLoop | None = None
        self._future: asyncio.Future[BrowserOutcome] | None = None
        self._callback_scheme: str | None = None

    @property
    def is_presenting(self) -> bool:
        """Whether a session is waiting for its redirect."""
        return self._future is not None and not self._future.done()

    async def present(
        self,
        url: str,
        callback_scheme: str,
        context: PresentationContext,
    ) -> BrowserOutcome:
        """Open ``url`` in the system browser and await the redirect."""
        if self.is_presenting:
            msg = "A browser session is already being presented"
            raise RuntimeError(msg)

        self._loop = asyncio.get_running_loop()
        self._future = self._loop.create_future()
        self._callback_scheme = callback_scheme

        try:
            try:
                opened = await self._loop.run_in_executor(None, self._opener, url)
            except OSError as exc:
                return BrowserOutcome.failed(exc)
            if not opened and not self._future.done():
                return BrowserOutcome.failed(OSError("Could not open a web browser"))
            logger.debug("Browser session opened, waiting for %s redirect", callback_scheme)
            return await self._future
        finally:
            self._future = None
            self._callback_scheme = None

    def resume(self, url: str) -> bool:
        """Complete the outstanding session with an inbound redirect URL."""
        future, loop, scheme = self._future, self._loop, self._callback_scheme
        if future is None or loop is None or scheme is None or future.done():
            return False
        if not _scheme_matches(url, scheme):
            return False
        loop.call_soon_threadsafe(self._resolve, future, BrowserOutcome.redirected(url))
        return True

    def cancel(self) -> None:
        """Resolve the outstanding session as cancelled."""
        future, loop = self._future, self._loop
        if future is None or loop is None or future.done():
            return
        loop.call_soon_threadsafe(self._resolve, future, BrowserOutcome.cancelled())

    @staticmethod
    def _resolve(future: asyncio.Future[BrowserOutcome], outcome: BrowserOutcome) -> None:
        # First resolution wins
        if not future.done():
            future.set_result(outcome)


class ConsoleBrowserGateway(BrowserSessionGateway):
    """Gateway for terminals: the user pastes the redirect URL back.

    Opens the browser (unless ``open_browser`` is False), prints the URL,
    and reads one line from ``stdin``. An empty line cancels.

    Parameters
    ----------
    open_browser : bool
        Try to open the system browser as well as printing the URL.
    stdin : TextIO, optional
        Input stream (default ``sys.stdin``).
    stdout : TextIO, optional
        Output stream (default ``sys.stdout``).
    """

    def __init__(
        self,
        open_browser: bool = True,
        stdin: TextIO | None = None,
        stdout: TextIO | None = None,
    ) -> None:
        """Initialize the gateway."""
        self.open_browser = open_browser
        self._stdin = stdin or sys.stdin
        self._stdout = stdout or sys.stdout
        self._task: asyncio.Future[str] | None = None
        self._cancelled = False

    async def present(
        self,
        url: str,
        callback_scheme: str,
        context: PresentationContext,
    ) -> BrowserOutcome:
        """Print ``url`` and read the pasted redirect URL."""
        self._cancelled = False
        loop = asyncio.get_running_loop()
        if self.open_browser:
            try:
                await loop.run_in_executor(None, webbrowser.open, url)
            except OSError as exc:
                logger.debug("Could not open a web browser: %s", exc)
        self._stdout.write(f"Open this URL to sign in:\n\n  {url}\n\n")
        self._stdout.write(
            f"After approving, paste the {callback_scheme}: URL the browser was sent to "
            "(empty line to cancel):\n> "
        )
        self._stdout.flush()

        self._task = loop.run_in_executor(None, self._stdin.readline)
        try:
            line = await self._task
        except OSError as exc:
            return BrowserOutcome.failed(exc)
        except asyncio.CancelledError:
            if self._cancelled:
                return BrowserOutcome.cancelled()
            raise
        finally:
            self._task = None

        pasted = line.strip()
        if self._cancelled or not pasted:
            return BrowserOutcome.cancelled()
        if not _scheme_matches(pasted, callback_scheme):
            logger.warning("Pasted URL does not use the %s scheme", callback_scheme)
        return BrowserOutcome.redirected(pasted)

    def cancel(self) -> None:
        """Stop waiting for the pasted URL."""
        self._cancelled = True
        if self._task is not None and not self._task.done():
            self._task.cancel()
