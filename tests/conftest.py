"""Pytest configuration and fixtures."""

from __future__ import annotations

import os

from typing import TYPE_CHECKING

import pytest

from pysignin.config import SignInConfiguration, clear_settings

from tests.constants import CLIENT_ID


if TYPE_CHECKING:
    from collections.abc import Generator
    from pathlib import Path


@pytest.fixture(autouse=True)
def isolated_settings(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> Generator[Path, None, None]:
    """Run every test without ambient PYSIGNIN_ variables or config files."""
    for key in list(os.environ):
        if key.startswith("PYSIGNIN_"):
            monkeypatch.delenv(key)
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("APPDATA", str(home))
    work = tmp_path / "work"
    work.mkdir()
    monkeypatch.chdir(work)
    clear_settings()
    yield work
    clear_settings()


@pytest.fixture()
def configuration() -> SignInConfiguration:
    """Create a client configuration with the default scopes."""
    return SignInConfiguration(client_id=CLIENT_ID)
