"""
Product co-occurrence similarity
"""

import logging
from collections import defaultdict
from itertools import combinations
from typing import Dict, Iterable, Set

from ..core.models import ProductPair, TrainingRow


logger = logging.getLogger(__name__)

DEFAULT_MIN_COUNT = 3


def count_cooccurrences(rows: Iterable[TrainingRow]) -> Dict[ProductPair, int]:
    """
    Count, per unordered product pair, how many users touched both products

    Repeat interactions do not add to a pair: a user contributes at most one
    to each pair of distinct products, however many rows they have for either.
    """
    products_by_user: Dict[str, Set[str]] = defaultdict(set)
    for row in rows:
        if row.product_id is not None:
            products_by_user[row.user_id].add(row.product_id)

    counts: Dict[ProductPair, int] = defaultdict(int)
    for products in products_by_user.values():
        for pair in combinations(sorted(products), 2):
            counts[pair] += 1
    return dict(counts)


def build_similarity(
    rows: Iterable[TrainingRow],
    min_count: int = DEFAULT_MIN_COUNT
) -> Dict[ProductPair, float]:
    """
    Compute pairwise product similarity for one training window

    Only pairs seen at least ``min_count`` times are kept. Each kept pair's
    strength is its count divided by the number of kept pairs, so a pair's
    strength depends on how many other pairs passed the threshold.

    Args:
        rows: Training rows within the window
        min_count: Smallest co-occurrence count that is retained

    Returns:
        Mapping of sorted product pairs to strength
    """
    counts = count_cooccurrences(rows)
    retained = {pair: count for pair, count in counts.items() if count >= min_count}

    denominator = max(len(retained), 1)
    similarity = {pair: count / denominator for pair, count in retained.items()}

    logger.debug(f"Retained {len(similarity)} of {len(counts)} co-occurring product pairs")
    return similarity
