"""Tests for redirect validation."""

from __future__ import annotations

import logging

import pytest

from pysignin.auth.callback import parse_callback_params, validate_callback
from pysignin.exceptions import (
    AuthenticationFailedError,
    InvalidResponseError,
    NetworkError,
    UserCancelledError,
)
from pysignin.types import BrowserOutcome

from tests.constants import CALLBACK_SCHEME


STATE = "expected-state"


def _redirect(query: str) -> BrowserOutcome:
    return BrowserOutcome.redirected(f"{CALLBACK_SCHEME}:/oauth2callback?{query}")


class TestParseCallbackParams:
    """Tests for parse_callback_params."""

    def test_basic(self) -> None:
        """Query parameters are decoded."""
        params = parse_callback_params(f"{CALLBACK_SCHEME}:/oauth2callback?code=4%2F0abc&state=s")
        assert params == {"code": "4/0abc", "state": "s"}

    def test_empty_values_dropped(self) -> None:
        """Parameters without a value are ignored."""
        params = parse_callback_params(f"{CALLBACK_SCHEME}:/oauth2callback?code=abc&scope=")
        assert params == {"code": "abc"}

    @pytest.mark.parametrize("url", [None, "", f"{CALLBACK_SCHEME}:/oauth2callback"])
    def test_missing_query(self, url: str | None) -> None:
        """A redirect without a query is malformed."""
        with pytest.raises(InvalidResponseError):
            parse_callback_params(url)

    def test_repeated_parameter(self) -> None:
        """Duplicate parameters are ambiguous and rejected."""
        with pytest.raises(InvalidResponseError, match="repeats") as exc_info:
            parse_callback_params(f"{CALLBACK_SCHEME}:/oauth2callback?code=a&code=b&state=s")
        assert exc_info.value.context == {"parameter": "code"}


class TestValidateCallback:
    """Tests for validate_callback."""

    def test_success_returns_code(self) -> None:
        """A matching state yields the authorization code."""
        assert validate_callback(_redirect(f"state={STATE}&code=abc"), STATE) == "abc"

    def test_cancelled(self, caplog: pytest.LogCaptureFixture) -> None:
        """A cancelled session surfaces as UserCancelledError, logged at INFO."""
        with (
            caplog.at_level(logging.INFO, logger="pysignin.auth"),
            pytest.raises(UserCancelledError),
        ):
            validate_callback(BrowserOutcome.cancelled(), STATE)
        assert any(r.levelno == logging.INFO for r in caplog.records)

    def test_transport_error(self) -> None:
        """A failed session surfaces as NetworkError with its cause."""
        cause = OSError("no browser")
        with pytest.raises(NetworkError) as exc_info:
            validate_callback(BrowserOutcome.failed(cause), STATE)
        assert exc_info.value.cause is cause
        assert exc_info.value.__cause__ is cause

    def test_provider_error_with_description(self) -> None:
        """Provider errors prefer the human-readable description."""
        outcome = _redirect(f"error=access_denied&error_description=User+denied&state={STATE}")
        with pytest.raises(AuthenticationFailedError) as exc_info:
            validate_callback(outcome, STATE)
        assert exc_info.value.detail == "User denied"
        assert exc_info.value.context == {"error": "access_denied"}

    def test_provider_error_without_description(self) -> None:
        """The error code is used when no description is sent."""
        with pytest.raises(AuthenticationFailedError, match="access_denied"):
            validate_callback(_redirect("error=access_denied"), STATE)

    def test_error_wins_over_code(self) -> None:
        """A redirect carrying an error never yields a code."""
        with pytest.raises(AuthenticationFailedError):
            validate_callback(_redirect(f"error=server_error&code=abc&state={STATE}"), STATE)

    def test_state_mismatch(self) -> None:
        """A foreign state is rejected even with a code."""
        with pytest.raises(AuthenticationFailedError, match="State mismatch"):
            validate_callback(_redirect("state=forged&code=abc"), STATE)

    def test_state_missing(self) -> None:
        """A missing state is treated as a mismatch."""
        with pytest.raises(AuthenticationFailedError, match="State mismatch"):
            validate_callback(_redirect("code=abc"), STATE)

    def test_missing_code(self) -> None:
        """A valid redirect without a code is malformed."""
        with pytest.raises(InvalidResponseError, match="no authorization code"):
            validate_callback(_redirect(f"state={STATE}"), STATE)

    def test_duplicate_state_rejected(self) -> None:
        """A repeated state cannot be used to smuggle a match."""
        with pytest.raises(InvalidResponseError):
            validate_callback(_redirect(f"state=forged&state={STATE}&code=abc"), STATE)
