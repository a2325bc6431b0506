"""
PostgreSQL Activity Store

Reads and writes the ``user_activities``, ``products``, ``recommendations`` and
``recommendation_models`` tables through an asyncpg pool. The schema is owned
elsewhere; this module only queries it.
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set

import asyncpg
import orjson

from ..core.exceptions import DataUnavailable
from ..core.models import Activity, ActivityKind, Model, Product, Recommendation, TrainingRow
from .activity_store import ActivityStore, empty_recommendation_stats


_ACTIVITY_COLUMNS = """
    id, user_id, product_id, activity_type, activity_data,
    EXTRACT(EPOCH FROM timestamp)::float8 AS occurred_at
"""

_STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError)

# recommendations.score is DECIMAL(5,4)
MAX_STORED_SCORE = 9.9999


def stored_score(score: float) -> float:
    """Fit a ranking score into the recommendations.score column"""
    return max(-MAX_STORED_SCORE, min(round(score, 4), MAX_STORED_SCORE))


def _activity_from_record(record) -> Activity:
    return Activity(
        user_id=record["user_id"],
        kind=record["activity_type"],
        product_id=record["product_id"],
        payload=record["activity_data"] or {},
        occurred_at=record["occurred_at"],
        activity_id=record["id"]
    )


async def _init_connection(conn):
    await conn.set_type_codec(
        "jsonb",
        encoder=lambda value: orjson.dumps(value).decode(),
        decoder=orjson.loads,
        schema="pg_catalog"
    )


class PostgresActivityStore(ActivityStore):
    """Activity store backed by PostgreSQL"""

    def __init__(self, dsn: str, min_size: int = 1, max_size: int = 20):
        self.dsn = dsn
        self.min_size = min_size
        self.max_size = max_size
        self.pool: Optional[asyncpg.Pool] = None
        self.logger = logging.getLogger(__name__)

    async def connect(self):
        if self.pool is not None:
            return
        try:
            self.pool = await asyncpg.create_pool(
                self.dsn,
                min_size=self.min_size,
                max_size=self.max_size,
                init=_init_connection
            )
        except _STORE_ERRORS as e:
            raise DataUnavailable("activity store", e)
        self.logger.info("Connected to activity store")

    async def _fetch(self, query: str, *args) -> List[asyncpg.Record]:
        await self.connect()
        try:
            return await self.pool.fetch(query, *args)
        except _STORE_ERRORS as e:
            raise DataUnavailable("activity store", e)

    async def append(self, activity: Activity) -> Activity:
        rows = await self._fetch(
            f"""
            INSERT INTO user_activities (user_id, product_id, activity_type, activity_data, timestamp)
            VALUES ($1, $2, $3, $4, to_timestamp($5)::timestamp)
            RETURNING {_ACTIVITY_COLUMNS}
            """,
            activity.user_id,
            activity.product_id,
            activity.kind.value,
            activity.payload,
            activity.occurred_at
        )
        return _activity_from_record(rows[0])

    async def recent_for_user(self, user_id: str, limit: int = 100) -> List[Activity]:
        rows = await self._fetch(
            f"""
            SELECT {_ACTIVITY_COLUMNS} FROM user_activities
            WHERE user_id = $1
            ORDER BY timestamp DESC
            LIMIT $2
            """,
            user_id, limit
        )
        return [_activity_from_record(row) for row in rows]

    async def activities_since(self, since: float) -> List[Activity]:
        rows = await self._fetch(
            f"""
            SELECT {_ACTIVITY_COLUMNS} FROM user_activities
            WHERE timestamp > to_timestamp($1)::timestamp
            """,
            since
        )
        return [_activity_from_record(row) for row in rows]

    async def activities_for_products(
        self,
        product_ids: Iterable[str],
        since: float,
        exclude_user: Optional[str] = None
    ) -> List[Activity]:
        rows = await self._fetch(
            f"""
            SELECT {_ACTIVITY_COLUMNS} FROM user_activities
            WHERE product_id = ANY($1)
              AND timestamp > to_timestamp($2)::timestamp
              AND ($3::varchar IS NULL OR user_id != $3)
            """,
            list(product_ids), since, exclude_user
        )
        return [_activity_from_record(row) for row in rows]

    async def activities_for_users(self, user_ids: Iterable[str]) -> List[Activity]:
        rows = await self._fetch(
            f"SELECT {_ACTIVITY_COLUMNS} FROM user_activities WHERE user_id = ANY($1)",
            list(user_ids)
        )
        return [_activity_from_record(row) for row in rows]

    async def product_ids_for_user(self, user_id: str) -> Set[str]:
        rows = await self._fetch(
            """
            SELECT DISTINCT product_id FROM user_activities
            WHERE user_id = $1 AND product_id IS NOT NULL
            """,
            user_id
        )
        return {row["product_id"] for row in rows}

    async def training_rows(self, since: float) -> List[TrainingRow]:
        rows = await self._fetch(
            """
            SELECT ua.user_id, ua.product_id, ua.activity_type,
                   EXTRACT(EPOCH FROM ua.timestamp)::float8 AS occurred_at,
                   p.category, p.price::float8 AS price
            FROM user_activities ua
            LEFT JOIN products p ON ua.product_id = p.id
            WHERE ua.timestamp > to_timestamp($1)::timestamp
            ORDER BY ua.user_id, ua.timestamp
            """,
            since
        )
        return [
            TrainingRow(
                user_id=row["user_id"],
                kind=ActivityKind(row["activity_type"]),
                occurred_at=row["occurred_at"],
                product_id=row["product_id"],
                category=row["category"],
                price=row["price"]
            )
            for row in rows
        ]

    async def products(self, product_ids: Optional[Iterable[str]] = None) -> Dict[str, Product]:
        if product_ids is None:
            rows = await self._fetch("SELECT id, name, category, price::float8 AS price FROM products")
        else:
            rows = await self._fetch(
                "SELECT id, name, category, price::float8 AS price FROM products WHERE id = ANY($1)",
                list(product_ids)
            )
        return {
            row["id"]: Product(
                product_id=row["id"],
                name=row["name"],
                category=row["category"],
                price=row["price"]
            )
            for row in rows
        }

    async def save_recommendations(
        self,
        user_id: str,
        recommendations: Sequence[Recommendation],
        model_version: Optional[str]
    ):
        await self.connect()
        try:
            async with self.pool.acquire() as conn:
                async with conn.transaction():
                    await conn.execute("DELETE FROM recommendations WHERE user_id = $1", user_id)
                    await conn.executemany(
                        """
                        INSERT INTO recommendations (user_id, product_id, score, model_version)
                        VALUES ($1, $2, $3, $4)
                        """,
                        [
                            (user_id, rec.product_id, stored_score(rec.score), model_version)
                            for rec in recommendations
                        ]
                    )
        except _STORE_ERRORS as e:
            raise DataUnavailable("activity store", e)

    async def recommendation_stats(self, user_id: str, since: float) -> Dict[str, Any]:
        rows = await self._fetch(
            """
            SELECT COUNT(*) AS total_recommendations,
                   AVG(score)::float8 AS average_score,
                   COUNT(delivered_at) AS delivered_count,
                   model_version
            FROM recommendations
            WHERE user_id = $1
              AND generated_at > to_timestamp($2)::timestamp
            GROUP BY model_version
            ORDER BY MAX(generated_at) DESC
            LIMIT 1
            """,
            user_id, since
        )
        if not rows:
            return empty_recommendation_stats()
        row = rows[0]
        return {
            "total_recommendations": row["total_recommendations"],
            "average_score": row["average_score"],
            "delivered_count": row["delivered_count"],
            "model_version": row["model_version"]
        }

    async def activity_summary(self, user_id: str, since: float) -> List[Dict[str, Any]]:
        rows = await self._fetch(
            """
            SELECT activity_type,
                   COUNT(*) AS count,
                   AVG(CASE WHEN activity_type = 'purchase'
                       THEN (activity_data->>'price')::decimal END)::float8 AS avg_purchase_value
            FROM user_activities
            WHERE user_id = $1
              AND timestamp > to_timestamp($2)::timestamp
            GROUP BY activity_type
            ORDER BY count DESC, activity_type
            """,
            user_id, since
        )
        return [dict(row) for row in rows]

    async def viewed_products(self, user_id: str, since: float, limit: int = 10) -> List[Dict[str, Any]]:
        rows = await self._fetch(
            """
            SELECT product_id, COUNT(*) AS view_count
            FROM user_activities
            WHERE user_id = $1 AND activity_type = 'view'
              AND timestamp > to_timestamp($2)::timestamp
            GROUP BY product_id
            ORDER BY view_count DESC, product_id
            LIMIT $3
            """,
            user_id, since, limit
        )
        return [dict(row) for row in rows]

    async def save_model(self, model: Model, metrics: Dict[str, Any]) -> Dict[str, Any]:
        model_id = f"model-{model.version}"
        rows = await self._fetch(
            """
            INSERT INTO recommendation_models (id, version, model_data, metrics, status)
            VALUES ($1, $2, $3, $4, 'completed')
            RETURNING id, version, metrics, status, EXTRACT(EPOCH FROM created_at)::float8 AS created_at
            """,
            model_id, model.version, model.to_dict(), dict(metrics)
        )
        self.logger.info(f"Model saved: {model.version} (ID: {model_id})")
        return dict(rows[0])

    async def list_models(self) -> List[Dict[str, Any]]:
        rows = await self._fetch(
            """
            SELECT id, version, metrics, status,
                   EXTRACT(EPOCH FROM created_at)::float8 AS created_at
            FROM recommendation_models
            ORDER BY created_at DESC
            """
        )
        return [dict(row) for row in rows]

    async def ping(self) -> bool:
        try:
            await self._fetch("SELECT 1")
            return True
        except DataUnavailable as e:
            self.logger.error(f"Activity store ping failed: {e}")
            return False

    async def close(self):
        self.logger.info("Closing activity store...")
        if self.pool is not None:
            await self.pool.close()
            self.pool = None
