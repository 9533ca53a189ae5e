"""Shared test fixtures for pmpulse tests."""

from __future__ import annotations

from datetime import datetime

import pytest

from pmpulse.contracts.config import PmPulseConfig
from pmpulse.store import InMemoryStore, ScopedStore
from tests.fakes.builders import ts
from tests.fakes.provider import FakeProvider


@pytest.fixture
def now() -> datetime:
    """Fixed clock used by time-dependent analytics."""
    return ts("2025-06-02T12:00")


@pytest.fixture
def store() -> ScopedStore:
    """Global-context store over an empty in-memory backend."""
    return ScopedStore(InMemoryStore())


@pytest.fixture
def fake_provider() -> FakeProvider:
    return FakeProvider()


@pytest.fixture
def single_config(tmp_path) -> PmPulseConfig:
    """Single-source config for project ``group/app`` with epics from ``group``."""
    return PmPulseConfig(
        project_id="group/app",
        group_paths=["group"],
        filter_by_year=None,
        store_path=tmp_path / "store.json",
    )
