"""Shared fixtures."""

from __future__ import annotations

import pytest

from slackirc.storage import MappingStore
from tests.mocks import FakeClock


@pytest.fixture
def store():
    s = MappingStore(":memory:")
    yield s
    s.close()


@pytest.fixture
def clock():
    return FakeClock()
