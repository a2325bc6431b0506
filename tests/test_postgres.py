"""
Unit tests for the PostgreSQL store that need no database
"""

from contextlib import asynccontextmanager

import pytest

from recstream.core.models import Recommendation
from recstream.storage.postgres import MAX_STORED_SCORE, PostgresActivityStore, stored_score


class RecordingConnection:
    """Connection stand-in recording the statements it receives"""

    def __init__(self):
        self.executed = []
        self.batches = []

    @asynccontextmanager
    async def transaction(self):
        yield

    async def execute(self, query, *args):
        self.executed.append((query, args))

    async def executemany(self, query, rows):
        self.batches.append((query, list(rows)))


class RecordingPool:
    def __init__(self):
        self.conn = RecordingConnection()

    @asynccontextmanager
    async def acquire(self):
        yield self.conn


class TestStoredScore:
    """Test cases for fitting scores into recommendations.score"""

    @pytest.mark.parametrize("score,expected", [
        (2.0, 2.0),
        (0.12345, 0.1235),
        (10.0, MAX_STORED_SCORE),
        (57.0, MAX_STORED_SCORE),
    ])
    def test_stored_score(self, score, expected):
        assert stored_score(score) == pytest.approx(expected)


class TestSaveRecommendations:
    """Test cases for PostgresActivityStore.save_recommendations"""

    @pytest.mark.asyncio
    async def test_popularity_scores_fit_the_column(self):
        store = PostgresActivityStore("postgresql://unused")
        store.pool = RecordingPool()
        recommendations = [
            Recommendation(product_id="p1", score=12.0, confidence=0.5, reason="popular_products", rank=1),
            Recommendation(product_id="p2", score=3.0, confidence=0.5, reason="popular_products", rank=2),
        ]

        await store.save_recommendations("u1", recommendations, "v1.0")

        conn = store.pool.conn
        assert conn.executed[0][1] == ("u1",)
        _, rows = conn.batches[0]
        assert rows == [("u1", "p1", MAX_STORED_SCORE, "v1.0"), ("u1", "p2", 3.0, "v1.0")]
