# Copyright (c) 2026 Veritas Aequitas Holdings LLC. All rights reserved.
"""Shared test fixtures and configuration."""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta

import pytest

START = datetime(2026, 1, 1, 12, 0, 0, tzinfo=UTC)


class FakeClock:
    """Manually advanced UTC clock injected into stores."""

    def __init__(self, start: datetime = START) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def _isolate_environment(monkeypatch: pytest.MonkeyPatch, tmp_path):
    """Keep STASHKV_* variables and .env files from leaking into tests."""
    import os

    for name in list(os.environ):
        if name.startswith("STASHKV_"):
            monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


@pytest.fixture(autouse=True)
def _reset_stashkv_logger():
    """Drop handlers installed by setup_logging (the CLI installs one per run)."""
    yield
    logger = logging.getLogger("stashkv")
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)
