"""Pytest configuration and shared fixtures."""

from datetime import datetime, timedelta, timezone

import pytest

from components.interfaces import Config
from history.repository import InMemoryStageHistory
from unit.fixtures.record_factory import RecordFactory
from unit.fixtures.xml_factory import XmlFactory


@pytest.fixture
def record_factory():
    """Provide RecordFactory instance."""
    return RecordFactory()


@pytest.fixture
def xml_factory():
    """Provide XmlFactory instance."""
    return XmlFactory()


@pytest.fixture
def config():
    """Default configuration with corpus acquisition switched off."""
    return Config(overrides={"crossref": {"enabled": False}})


@pytest.fixture
def history():
    """Fresh in-memory stage history."""
    return InMemoryStageHistory()


@pytest.fixture
def fixed_clock():
    """Deterministic clock advancing one minute per call."""
    start = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)
    ticks = {"n": 0}

    def _clock() -> datetime:
        ticks["n"] += 1
        return start + timedelta(minutes=ticks["n"])

    return _clock
