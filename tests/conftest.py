# SPDX-License-Identifier: MIT
"""Test configuration for hexref.

Keeps Logfire local, isolates the environment from the developer's settings
and provides store and allocator fixtures.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from itertools import count

import logfire
import pytest

from core import ReferenceAllocator
from io_utils.store import InMemoryAllocationStore
from observability import telemetry

logfire.configure(send_to_logfire=False, console=False)

FIXED_TODAY = "2024-01-15"


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    """Run every test in a scratch directory with no HEXREF_ overrides."""

    for var in (
        "HEXREF_SECRET",
        "HEXREF_LOG_LEVEL",
        "HEXREF_LOGFIRE_TOKEN",
        "HEXREF_STORE_DIR",
    ):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setenv("HEXREF_STORE_DIR", str(tmp_path / "store"))
    monkeypatch.chdir(tmp_path)


@pytest.fixture(autouse=True)
def _reset_telemetry():
    """Ensure allocation tallies start from zero."""
    telemetry.reset()
    yield
    telemetry.reset()


@pytest.fixture()
def clock():
    """Return a deterministic, strictly increasing UTC clock."""

    start = datetime(2024, 1, 15, 9, 30, tzinfo=timezone.utc)
    ticks = count()
    return lambda: start + timedelta(seconds=next(ticks))


@pytest.fixture()
def store() -> InMemoryAllocationStore:
    return InMemoryAllocationStore()


@pytest.fixture()
def allocator(store, clock) -> ReferenceAllocator:
    """Allocator over an in-memory store with a fixed notion of today."""

    return ReferenceAllocator(store, clock=clock, today=lambda: FIXED_TODAY)
