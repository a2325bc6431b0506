"""
Feature extraction over a window of training rows
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable

from ..core.models import ActivityKind, ProductVector, TrainingRow, UserVector


logger = logging.getLogger(__name__)


@dataclass
class ExtractedFeatures:
    """Per-user and per-product aggregates for one training run"""
    user_vectors: Dict[str, UserVector] = field(default_factory=dict)
    product_vectors: Dict[str, ProductVector] = field(default_factory=dict)
    row_count: int = 0


def extract_features(rows: Iterable[TrainingRow]) -> ExtractedFeatures:
    """
    Build user and product vectors from training rows

    Rows are expected in user/time order. Rows without a product (searches)
    still count toward the user's categories and last activity but are skipped
    for every product-keyed aggregate.

    Args:
        rows: Training rows within the trailing window

    Returns:
        Extracted user and product vectors
    """
    features = ExtractedFeatures()

    for row in rows:
        features.row_count += 1

        user_vec = features.user_vectors.get(row.user_id)
        if user_vec is None:
            user_vec = features.user_vectors[row.user_id] = UserVector()

        if row.product_id is not None:
            if row.kind is ActivityKind.VIEW:
                user_vec.viewed.add(row.product_id)
                if row.price is not None:
                    user_vec.add_viewed_price(row.price)
            elif row.kind is ActivityKind.PURCHASE:
                user_vec.purchased.add(row.product_id)
            elif row.kind is ActivityKind.ADD_TO_CART:
                user_vec.carted.add(row.product_id)

        if row.category:
            user_vec.category_counts[row.category] = user_vec.category_counts.get(row.category, 0) + 1

        user_vec.last_activity = row.occurred_at

        if row.product_id is None:
            continue

        product_vec = features.product_vectors.get(row.product_id)
        if product_vec is None:
            product_vec = features.product_vectors[row.product_id] = ProductVector(
                category=row.category,
                price=row.price
            )

        product_vec.unique_users.add(row.user_id)

        if row.kind is ActivityKind.VIEW:
            product_vec.view_count += 1
        elif row.kind is ActivityKind.PURCHASE:
            product_vec.purchase_count += 1
        elif row.kind is ActivityKind.ADD_TO_CART:
            product_vec.cart_count += 1

    logger.debug(
        f"Extracted {len(features.user_vectors)} user vectors and "
        f"{len(features.product_vectors)} product vectors from {features.row_count} rows"
    )
    return features
