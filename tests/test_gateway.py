"""Tests for browser session gateways."""

from __future__ import annotations

import asyncio
import threading

from io import StringIO
from unittest.mock import patch

import pytest

from pysignin.auth.gateway import ConsoleBrowserGateway, SystemBrowserGateway
from pysignin.types import BrowserOutcomeKind, PresentationContext

from tests.constants import CALLBACK_SCHEME, SHORT_TIMEOUT


AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth?state=s"
REDIRECT = f"{CALLBACK_SCHEME}:/oauth2callback?code=c&state=s"


def _run(coro):
    """Run an async coroutine synchronously."""
    return asyncio.run(coro)


class _RecordingOpener:
    """Stand-in for webbrowser.open that records the URL it was given."""

    def __init__(self, result: bool = True) -> None:
        self.result = result
        self.urls: list[str] = []
        self.opened = threading.Event()

    def __call__(self, url: str) -> bool:
        self.urls.append(url)
        self.opened.set()
        return self.result


async def _wait_opened(opener: _RecordingOpener) -> None:
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, opener.opened.wait, SHORT_TIMEOUT)


class TestSystemBrowserGateway:
    """Tests for SystemBrowserGateway."""

    def test_resume_completes_session(self) -> None:
        """A redirect handed to resume resolves the session."""
        opener = _RecordingOpener()
        gateway = SystemBrowserGateway(opener=opener)

        async def _flow():
            task = asyncio.create_task(
                gateway.present(AUTH_URL, CALLBACK_SCHEME, PresentationContext())
            )
            await _wait_opened(opener)
            await asyncio.sleep(0)
            assert gateway.is_presenting
            assert gateway.resume(REDIRECT) is True
            return await asyncio.wait_for(task, SHORT_TIMEOUT)

        outcome = _run(_flow())
        assert outcome.kind is BrowserOutcomeKind.REDIRECT
        assert outcome.url == REDIRECT
        assert opener.urls == [AUTH_URL]
        assert not gateway.is_presenting

    def test_resume_from_another_thread(self) -> None:
        """Redirects may arrive on a thread other than the loop's."""
        opener = _RecordingOpener()
        gateway = SystemBrowserGateway(opener=opener)

        def _deliver() -> None:
            opener.opened.wait(SHORT_TIMEOUT)
            # present() may still be between the opener and awaiting the future
            for _ in range(100):
                if gateway.resume(REDIRECT):
                    return
                threading.Event().wait(0.01)

        async def _flow():
            thread = threading.Thread(target=_deliver, daemon=True)
            thread.start()
            outcome = await asyncio.wait_for(
                gateway.present(AUTH_URL, CALLBACK_SCHEME, PresentationContext()),
                SHORT_TIMEOUT,
            )
            thread.join(SHORT_TIMEOUT)
            return outcome

        assert _run(_flow()).url == REDIRECT

    def test_resume_wrong_scheme(self) -> None:
        """URLs for other schemes do not complete the session."""
        opener = _RecordingOpener()
        gateway = SystemBrowserGateway(opener=opener)

        async def _flow():
            task = asyncio.create_task(
                gateway.present(AUTH_URL, CALLBACK_SCHEME, PresentationContext())
            )
            await _wait_opened(opener)
            await asyncio.sleep(0)
            rejected = gateway.resume("https://example.com/?code=c")
            gateway.cancel()
            return rejected, await asyncio.wait_for(task, SHORT_TIMEOUT)

        rejected, outcome = _run(_flow())
        assert rejected is False
        assert outcome.kind is BrowserOutcomeKind.CANCELLED

    def test_scheme_case_insensitive(self) -> None:
        """Scheme matching ignores case."""
        opener = _RecordingOpener()
        gateway = SystemBrowserGateway(opener=opener)

        async def _flow():
            task = asyncio.create_task(
                gateway.present(AUTH_URL, CALLBACK_SCHEME, PresentationContext())
            )
            await _wait_opened(opener)
            await asyncio.sleep(0)
            assert gateway.resume(REDIRECT.replace(CALLBACK_SCHEME, CALLBACK_SCHEME.upper()))
            return await asyncio.wait_for(task, SHORT_TIMEOUT)

        assert _run(_flow()).kind is BrowserOutcomeKind.REDIRECT

    def test_resume_without_session(self) -> None:
        """Nothing is waiting, so the URL is not consumed."""
        assert SystemBrowserGateway(opener=_RecordingOpener()).resume(REDIRECT) is False

    def test_cancel(self) -> None:
        """cancel resolves the session as cancelled; later redirects are ignored."""
        opener = _RecordingOpener()
        gateway = SystemBrowserGateway(opener=opener)

        async def _flow():
            task = asyncio.create_task(
                gateway.present(AUTH_URL, CALLBACK_SCHEME, PresentationContext())
            )
            await _wait_opened(opener)
            await asyncio.sleep(0)
            gateway.cancel()
            outcome = await asyncio.wait_for(task, SHORT_TIMEOUT)
            return outcome, gateway.resume(REDIRECT)

        outcome, late = _run(_flow())
        assert outcome.kind is BrowserOutcomeKind.CANCELLED
        assert late is False

    def test_browser_unavailable(self) -> None:
        """An opener reporting failure ends the session with an error."""
        gateway = SystemBrowserGateway(opener=_RecordingOpener(result=False))
        outcome = _run(gateway.present(AUTH_URL, CALLBACK_SCHEME, PresentationContext()))
        assert outcome.kind is BrowserOutcomeKind.ERROR
        assert isinstance(outcome.error, OSError)

    def test_opener_raises(self) -> None:
        """An opener raising OSError ends the session with that error."""

        def _broken(url: str) -> bool:
            raise OSError("no display")

        gateway = SystemBrowserGateway(opener=_broken)
        outcome = _run(gateway.present(AUTH_URL, CALLBACK_SCHEME, PresentationContext()))
        assert outcome.kind is BrowserOutcomeKind.ERROR
        assert str(outcome.error) == "no display"


class TestConsoleBrowserGateway:
    """Tests for ConsoleBrowserGateway."""

    def test_pasted_redirect(self) -> None:
        """The pasted URL completes the session."""
        stdout = StringIO()
        gateway = ConsoleBrowserGateway(
            open_browser=False, stdin=StringIO(f"  {REDIRECT}\n"), stdout=stdout
        )
        outcome = _run(gateway.present(AUTH_URL, CALLBACK_SCHEME, PresentationContext()))

        assert outcome.kind is BrowserOutcomeKind.REDIRECT
        assert outcome.url == REDIRECT
        assert AUTH_URL in stdout.getvalue()
        assert CALLBACK_SCHEME in stdout.getvalue()

    @pytest.mark.parametrize("line", ["\n", ""])
    def test_empty_line_cancels(self, line: str) -> None:
        """An empty line or end of input cancels."""
        gateway = ConsoleBrowserGateway(open_browser=False, stdin=StringIO(line), stdout=StringIO())
        outcome = _run(gateway.present(AUTH_URL, CALLBACK_SCHEME, PresentationContext()))
        assert outcome.kind is BrowserOutcomeKind.CANCELLED

    def test_opens_browser(self) -> None:
        """The browser is opened unless disabled."""
        gateway = ConsoleBrowserGateway(stdin=StringIO(f"{REDIRECT}\n"), stdout=StringIO())
        with patch("webbrowser.open") as mock_open:
            _run(gateway.present(AUTH_URL, CALLBACK_SCHEME, PresentationContext()))
        mock_open.assert_called_once_with(AUTH_URL)

    def test_foreign_url_passed_through(self) -> None:
        """A URL with another scheme is still returned; state validation rejects it later."""
        gateway = ConsoleBrowserGateway(
            open_browser=False, stdin=StringIO("https://example.com/?code=c\n"), stdout=StringIO()
        )
        outcome = _run(gateway.present(AUTH_URL, CALLBACK_SCHEME, PresentationContext()))
        assert outcome.kind is BrowserOutcomeKind.REDIRECT

    def test_browser_opened_off_event_loop_thread(self) -> None:
        """Opening the browser does not block the event loop thread."""
        gateway = ConsoleBrowserGateway(stdin=StringIO(f"{REDIRECT}\n"), stdout=StringIO())
        threads: list[int] = []

        def _open(url: str) -> bool:
            threads.append(threading.get_ident())
            return True

        async def _flow():
            loop_thread = threading.get_ident()
            with patch("webbrowser.open", side_effect=_open):
                outcome = await gateway.present(AUTH_URL, CALLBACK_SCHEME, PresentationContext())
            return loop_thread, outcome

        loop_thread, outcome = _run(_flow())
        assert outcome.kind is BrowserOutcomeKind.REDIRECT
        assert len(threads) == 1
        assert threads[0] != loop_thread

    def test_browser_error_still_prints_url(self) -> None:
        """A failing browser launch falls back to the printed URL."""
        stdout = StringIO()
        gateway = ConsoleBrowserGateway(stdin=StringIO(f"{REDIRECT}\n"), stdout=stdout)
        with patch("webbrowser.open", side_effect=OSError("no display")):
            outcome = _run(gateway.present(AUTH_URL, CALLBACK_SCHEME, PresentationContext()))
        assert outcome.kind is BrowserOutcomeKind.REDIRECT
        assert AUTH_URL in stdout.getvalue()
