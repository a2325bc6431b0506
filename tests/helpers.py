"""
Test helpers: fake clock, training row builder, async polling
"""

import asyncio
from typing import Callable, Optional

from recstream.core.models import ActivityKind, TrainingRow


NOW = 1_700_000_000.0


class FakeClock:
    """Manually advanced clock; optionally ticks forward on every read"""

    def __init__(self, start: float = NOW, step: float = 0.0):
        self.now = start
        self.step = step

    def __call__(self) -> float:
        value = self.now
        self.now += self.step
        return value

    def advance(self, seconds: float):
        self.now += seconds


def row(
    user_id: str,
    product_id: Optional[str],
    kind: str = "view",
    occurred_at: float = NOW,
    category: Optional[str] = None,
    price: Optional[float] = None
) -> TrainingRow:
    return TrainingRow(
        user_id=user_id,
        kind=ActivityKind(kind),
        occurred_at=occurred_at,
        product_id=product_id,
        category=category,
        price=price
    )


async def wait_for(predicate: Callable[[], bool], timeout: float = 2.0):
    """Poll until ``predicate`` holds; lets background dispatch loops run"""
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not reached before timeout")
        await asyncio.sleep(0.01)


