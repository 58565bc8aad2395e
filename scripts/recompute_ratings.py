"""
recompute_ratings.py — rebuild derived rating aggregates from review rows.

Use after bulk imports, manual SQL edits, or any suspicion of drift.
Every item is recomputed from its visible reviews and cascaded to its
restaurant, exactly as a review mutation would.

Usage:
    python scripts/recompute_ratings.py                 # every menu item
    python scripts/recompute_ratings.py --item 12 --item 40
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from menurate.database import AsyncSessionLocal, engine
from menurate.services.ratings import recompute_all_ratings, recompute_menu_item_ratings

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
)
logger = logging.getLogger(__name__)


async def run_recompute(item_ids: list[int]) -> None:
    """Recompute the given items, or all of them when none are given."""
    async with AsyncSessionLocal() as session:
        if not item_ids:
            await recompute_all_ratings(session)
        else:
            for menu_item_id in item_ids:
                ratings = await recompute_menu_item_ratings(session, menu_item_id)
                if ratings is None:
                    logger.warning("Menu item %d does not exist, skipped", menu_item_id)
                    continue
                logger.info(
                    "Menu item %d: avg=%s reviews=%d | restaurant %s: avg=%s reviews=%d",
                    menu_item_id,
                    ratings.avg_rating,
                    ratings.total_reviews,
                    ratings.restaurant_id,
                    ratings.restaurant.avg_rating,
                    ratings.restaurant.total_reviews,
                )
    await engine.dispose()


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(description="Recompute menu item and restaurant rating aggregates.")
    parser.add_argument(
        "--item", type=int, action="append", default=[],
        help="Menu item id to recompute (repeatable). Omit to recompute everything.",
    )
    args = parser.parse_args()

    asyncio.run(run_recompute(args.item))


if __name__ == "__main__":
    main()
