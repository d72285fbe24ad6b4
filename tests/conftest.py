"""Shared fixtures: keep host environment and logging state out of tests."""

from __future__ import annotations

import logging
from collections.abc import Generator

import pytest

from transparency_sandbox.config import ENV_OVERRIDES
from transparency_sandbox.telemetry import ROOT_LOGGER, shutdown_telemetry


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for var in ENV_OVERRIDES:
        monkeypatch.delenv(var, raising=False)


@pytest.fixture(autouse=True)
def _reset_package_logger() -> Generator[None, None, None]:
    root = logging.getLogger(ROOT_LOGGER)
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.fixture(autouse=True)
def _stop_tracing() -> Generator[None, None, None]:
    yield
    shutdown_telemetry()
