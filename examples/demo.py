#!/usr/bin/env python3
"""
Recstream - Demo

Seeds the demo catalog and activity in memory, trains and publishes a model,
serves recommendations and shows event-driven cache invalidation.
"""

import asyncio
import logging

from recstream.core.registry import ModelRegistry
from recstream.serving.services import RecommendationService, TrainingService
from recstream.storage.activity_store import InMemoryActivityStore
from recstream.storage.seed import seed_demo
from recstream.streaming.bus import InMemoryMessageBus

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def print_header(title: str, char: str = "="):
    """Print a formatted header"""
    print()
    print(char * 70)
    print(f" {title}")
    print(char * 70)
    print()


def print_section(title: str):
    """Print a section header"""
    print(f"\n⚡ {title}")
    print("-" * (len(title) + 3))


def print_recommendations(response):
    if not response["success"]:
        print(f"  ❌ {response.get('error')}")
        return
    print(f"  model {response['model_version']}, generated at {response['generated_at']:.3f}")
    for rec in response["recommendations"]:
        product = rec.get("product", {})
        print(
            f"  {rec['rank']:>2}. {rec['product_id']:<11} {product.get('name', ''):<35} "
            f"score={rec['score']:.2f} confidence={rec['confidence']:.2f} ({rec['reason']})"
        )


async def run_demo():
    """Run the complete demonstration"""
    print_header("⚡ Recstream - Demo")

    print_section("Seeding demo data")
    store = seed_demo(InMemoryActivityStore())
    bus = InMemoryMessageBus()
    registry = ModelRegistry()

    recommendation = RecommendationService(store, bus, registry=registry)
    training = TrainingService(store, bus, registry=registry)
    await recommendation.start()
    await training.start()
    print(f"✅ {len(store.catalog)} products, {len(store.user_activities)} users, model {registry.current_version}")

    try:
        print_section("Training a model")
        submitted = training.train({"weights": {"view": 1, "add_to_cart": 2.5, "purchase": 5}})
        print(f"  job {submitted['id']}: {submitted['status']}")
        await training.scheduler.wait_idle(timeout=30)

        job = training.scheduler.get_job(submitted["id"])
        print(f"  job finished: {job.status.value}, model {job.model_version}")
        for record in await store.list_models():
            print(f"  metrics for {record['version']}: {record['metrics']}")
        print(f"✅ Serving model {registry.current_version}")

        print_section("Recommendations for an active user (user-1)")
        print_recommendations(await recommendation.get_recommendations("user-1", 5))

        print_section("Recommendations for a cold-start user (user-5)")
        first = await recommendation.get_recommendations("user-5", 5)
        print_recommendations(first)

        print_section("Cached response")
        again = await recommendation.get_recommendations("user-5", 5)
        print(f"  same generated_at: {again['generated_at'] == first['generated_at']}")

        print_section("New activity invalidates the cache")
        tracked = await recommendation.track_activity("user-5", "view", "product-6", {"source": "demo"})
        print(f"  tracked activity {tracked['activity_id']} (announced: {tracked['notified']})")
        await asyncio.sleep(0.1)
        refreshed = await recommendation.get_recommendations("user-5", 5)
        print(f"  regenerated: {refreshed['generated_at'] != first['generated_at']}")
        print_recommendations(refreshed)

        print_section("Cache statistics")
        for key, value in recommendation.cache.get_stats().items():
            print(f"  {key}: {value}")

    finally:
        await training.stop()
        await recommendation.stop()
        await bus.close()

    print_header("✨ Demo Complete!", "🌟")


def main():
    """Main entry point"""
    try:
        asyncio.run(run_demo())
    except KeyboardInterrupt:
        print("\n\nDemo interrupted.")


if __name__ == "__main__":
    main()
