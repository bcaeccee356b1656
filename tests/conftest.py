"""Shared fixtures for the dashboard tests."""

from __future__ import annotations

import os
from collections.abc import Generator
from pathlib import Path

import pytest

from spotlight.config import Settings
from spotlight.logger import AppLogger
from spotlight.rotation import LogRotator


class FakeClock:
    """Manually advanced clock; also usable as a ``sleep`` that advances time."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep settings from the developer's shell out of the tests."""
    for name in list(os.environ):
        if name.startswith("SPOTLIGHT_") or name in ("FINNHUB_API_KEY", "LOG_LEVEL"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def log_path(tmp_path: Path) -> Path:
    return tmp_path / "logs" / "app.log"


@pytest.fixture
def app_logger(log_path: Path) -> Generator[AppLogger, None, None]:
    """File-only logger with the background scheduler disabled."""
    logger = AppLogger(log_path, LogRotator(log_path), console=False, start_scheduler=False)
    yield logger
    logger.close()


@pytest.fixture
def settings(log_path: Path) -> Settings:
    return Settings(
        finnhub_api_key="test-key",
        cache_ttl_seconds=60,
        log_path=log_path,
        log_console=False,
        rate_limit_seconds=0.0,
    )
