"""
Shared fixtures for the recstream test suite
"""

from typing import List

import pytest

from recstream.core.models import TrainingRow
from recstream.storage.activity_store import InMemoryActivityStore
from recstream.storage.seed import seed_demo

from .helpers import NOW, FakeClock


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def ticking_clock():
    return FakeClock(step=0.5)


@pytest.fixture
def demo_store():
    return seed_demo(InMemoryActivityStore(), now=NOW)


@pytest.fixture
def demo_rows(demo_store) -> List[TrainingRow]:
    return sorted(
        (
            TrainingRow.from_activity(a, demo_store.catalog.get(a.product_id))
            for activities in demo_store.user_activities.values()
            for a in activities
        ),
        key=lambda r: (r.user_id, r.occurred_at)
    )
