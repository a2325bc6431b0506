"""
Profile-based scoring against a trained Model
"""

from typing import List

from ..core.models import Model, ProductProfile, Recommendation, UserProfile


MODEL_SCORING_REASON = "model_scoring"


def score_product(user_profile: UserProfile, product_profile: ProductProfile) -> float:
    """
    Score one product for one user

    Category match adds 0.3, a price within half of the user's average viewed
    price adds 0.2, popularity adds up to 0.3 and conversion rate adds up to
    0.2. The result is not renormalized.
    """
    score = 0.0

    if product_profile.category in user_profile.preferred_categories:
        score += 0.3

    avg_price = user_profile.avg_price_range
    if avg_price and abs(product_profile.price - avg_price) / avg_price < 0.5:
        score += 0.2

    score += min(product_profile.popularity_score / 100, 0.3)
    score += product_profile.conversion_rate * 0.2

    return score


def rank_with_model(user_id: str, model: Model, limit: int = 10) -> List[Recommendation]:
    """
    Rank products for a user using only the trained profiles of ``model``

    Only users with at least one view are scored, and only products in one of
    their preferred categories are considered.
    """
    user_profile = model.user_profiles.get(user_id)
    if user_profile is None or user_profile.view_count <= 0:
        return []

    scored = []
    for product_id, product_profile in model.product_profiles.items():
        if product_profile.category in user_profile.preferred_categories:
            scored.append((product_id, score_product(user_profile, product_profile)))

    scored.sort(key=lambda x: x[1], reverse=True)

    return [
        Recommendation(
            product_id=product_id,
            score=score,
            confidence=min(score, 1.0),
            reason=MODEL_SCORING_REASON,
            rank=i + 1
        )
        for i, (product_id, score) in enumerate(scored[:limit])
    ]
