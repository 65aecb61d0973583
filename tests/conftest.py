"""Root pytest configuration for all tests.

Domain tests run against the in-process fakes in tests/fakes.py, so they
never touch a browser, a database or the network. Infrastructure tests use
the real adapters against ``tmp_path``.
"""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from domain.coverage.value_objects import Investor
from tests.fakes import FakeClock, FakeMapWidget, InMemoryCoverageRepository


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def widget() -> FakeMapWidget:
    return FakeMapWidget()


@pytest.fixture
def repository(clock: FakeClock) -> InMemoryCoverageRepository:
    return InMemoryCoverageRepository(
        clock,
        investors=[
            Investor(id=1, company_name="Acme Capital"),
            Investor(id=2, company_name="Birch & Co", tier=2),
        ],
    )
