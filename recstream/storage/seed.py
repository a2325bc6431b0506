"""
Demo dataset: a small catalog and a week of activity for five users
"""

import time
from typing import List, Optional

from ..core.models import Activity, ActivityKind, Product
from .activity_store import InMemoryActivityStore


HOUR = 3600
DAY = 24 * HOUR

DEMO_PRODUCTS = (
    Product("product-1", "Смартфон Galaxy A53", "Электроника", 29999.00),
    Product("product-2", "Наушники Bluetooth Sony", "Электроника", 8999.00),
    Product("product-3", "Ноутбук Lenovo IdeaPad", "Электроника", 45999.00),
    Product("product-4", "Кофемашина Nespresso", "Бытовая техника", 12999.00),
    Product("product-5", "Фитнес-браслет Xiaomi Mi Band", "Электроника", 2999.00),
    Product("product-6", "Умные часы Apple Watch", "Электроника", 35999.00),
    Product("product-7", "Книга \"Искусственный интеллект\"", "Книги", 899.00),
    Product("product-8", "Рюкзак для ноутбука", "Аксессуары", 2499.00),
    Product("product-9", "Внешний SSD 1TB", "Электроника", 7999.00),
    Product("product-10", "Планшет iPad", "Электроника", 39999.00),
)

# (user, product, kind, payload, seconds ago)
_DEMO_ACTIVITY = (
    ("user-1", "product-1", ActivityKind.VIEW, {"source": "search", "duration": 45}, 2 * DAY),
    ("user-1", "product-1", ActivityKind.ADD_TO_CART, {"quantity": 1}, 2 * DAY),
    ("user-1", "product-2", ActivityKind.VIEW, {"source": "recommendation", "duration": 30}, DAY),
    ("user-1", "product-6", ActivityKind.VIEW, {"source": "search", "duration": 60}, 3 * HOUR),
    ("user-1", "product-5", ActivityKind.PURCHASE, {"quantity": 1, "price": 2999.00}, 5 * DAY),

    ("user-2", "product-4", ActivityKind.VIEW, {"source": "category", "duration": 120}, DAY),
    ("user-2", "product-4", ActivityKind.ADD_TO_CART, {"quantity": 1}, DAY),
    ("user-2", "product-4", ActivityKind.PURCHASE, {"quantity": 1, "price": 12999.00}, 12 * HOUR),
    ("user-2", "product-7", ActivityKind.VIEW, {"source": "search", "duration": 90}, 3 * DAY),

    ("user-3", "product-8", ActivityKind.VIEW, {"source": "search", "duration": 45}, 2 * DAY),
    ("user-3", "product-8", ActivityKind.ADD_TO_CART, {"quantity": 1}, 2 * DAY),
    ("user-3", "product-2", ActivityKind.VIEW, {"source": "recommendation", "duration": 30}, DAY),
    ("user-3", "product-5", ActivityKind.VIEW, {"source": "popular", "duration": 25}, 6 * HOUR),

    ("user-4", "product-3", ActivityKind.VIEW, {"source": "search", "duration": 180}, 4 * DAY),
    ("user-4", "product-10", ActivityKind.VIEW, {"source": "comparison", "duration": 150}, 4 * DAY),
    ("user-4", "product-10", ActivityKind.ADD_TO_CART, {"quantity": 1}, 3 * DAY),
    ("user-4", "product-7", ActivityKind.VIEW, {"source": "search", "duration": 60}, 2 * DAY),
    ("user-4", "product-9", ActivityKind.VIEW, {"source": "accessory", "duration": 40}, DAY),

    ("user-5", "product-1", ActivityKind.VIEW, {"source": "homepage", "duration": 30}, 3 * HOUR),
)


def demo_activities(now: Optional[float] = None) -> List[Activity]:
    """Demo activity with timestamps relative to ``now``"""
    now = time.time() if now is None else now
    return [
        Activity(
            user_id=user_id,
            kind=kind,
            product_id=product_id,
            payload=dict(payload),
            occurred_at=now - ago
        )
        for user_id, product_id, kind, payload, ago in _DEMO_ACTIVITY
    ]


def seed_demo(store: InMemoryActivityStore, now: Optional[float] = None) -> InMemoryActivityStore:
    store.bulk_load(DEMO_PRODUCTS, demo_activities(now))
    return store
