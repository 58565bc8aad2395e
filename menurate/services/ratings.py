"""
Rating aggregator — keeps the derived rating columns on menu items and
restaurants consistent with the visible reviews.

Pipeline (always in this order, always synchronous):
  1. recompute_menu_item_ratings   — visible reviews → item averages + count
  2. recompute_restaurant_ratings  — item averages   → restaurant average + total

Both steps rebuild state from the current rows instead of applying deltas,
so edits, deletions and moderation can never make the aggregates drift.
Every average is rounded half-up to one decimal at its own level; the
restaurant average is therefore a mean of already-rounded item averages.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import math
from dataclasses import dataclass, field
from typing import AsyncIterator, Iterable, Optional, Protocol

from cachetools import LRUCache
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from menurate.config import settings
from menurate.models import MenuCategory, MenuItem, Restaurant, Review

logger = logging.getLogger(__name__)

# Sub-rating dimension → (Review column, MenuItem column)
DIMENSIONS: dict[str, tuple[str, str]] = {
    "taste": ("taste_rating", "avg_taste_rating"),
    "quality": ("quality_rating", "avg_quality_rating"),
    "value": ("value_rating", "avg_value_rating"),
    "presentation": ("presentation_rating", "avg_presentation_rating"),
}

# menu_item_id → asyncio.Lock, only used when SERIALIZE_RATING_UPDATES is on
_item_locks: LRUCache = LRUCache(maxsize=settings.rating_lock_cache_size)


class RatingRow(Protocol):
    """Anything carrying a rating and the four optional sub-ratings."""

    rating: float
    taste_rating: Optional[float]
    quality_rating: Optional[float]
    value_rating: Optional[float]
    presentation_rating: Optional[float]


@dataclass
class RestaurantRatings:
    """Aggregate written onto a Restaurant row."""

    restaurant_id: Optional[int] = None
    avg_rating: Optional[float] = None
    total_reviews: int = 0


@dataclass
class ItemRatings:
    """
    Aggregate written onto a MenuItem row.
    restaurant_id / restaurant are filled in by the persisting pipeline so
    the notifier can address the restaurant topic without another query.
    """

    menu_item_id: Optional[int] = None
    avg_rating: Optional[float] = None
    avg_taste_rating: Optional[float] = None
    avg_quality_rating: Optional[float] = None
    avg_value_rating: Optional[float] = None
    avg_presentation_rating: Optional[float] = None
    total_reviews: int = 0
    restaurant_id: Optional[int] = None
    restaurant: Optional[RestaurantRatings] = field(default=None, compare=False)

    def column_values(self) -> dict[str, Optional[float] | int]:
        """The six persisted MenuItem columns."""
        return {
            "avg_rating": self.avg_rating,
            "avg_taste_rating": self.avg_taste_rating,
            "avg_quality_rating": self.avg_quality_rating,
            "avg_value_rating": self.avg_value_rating,
            "avg_presentation_rating": self.avg_presentation_rating,
            "total_reviews": self.total_reviews,
        }


# ── Pure aggregation ───────────────────────────────────────────────────────────


def round_rating(value: float) -> float:
    """Round half-up to one decimal (4.25 → 4.3, 4.24 → 4.2)."""
    return math.floor(value * 10 + 0.5) / 10


def _mean_or_none(values: list[float]) -> Optional[float]:
    if not values:
        return None
    return round_rating(sum(values) / len(values))


def compute_item_ratings(reviews: Iterable[RatingRow]) -> ItemRatings:
    """
    Build the item aggregate from the counted (visible) reviews.

    An empty set is the reset state: every average None, count 0.
    Reviews missing a sub-rating are left out of that dimension's mean
    but still count toward total_reviews and the overall average.
    """
    rows = list(reviews)
    if not rows:
        return ItemRatings()

    result = ItemRatings(
        avg_rating=_mean_or_none([float(r.rating) for r in rows]),
        total_reviews=len(rows),
    )
    for review_col, item_col in DIMENSIONS.values():
        present = [
            float(getattr(r, review_col))
            for r in rows
            if getattr(r, review_col) is not None
        ]
        setattr(result, item_col, _mean_or_none(present))
    return result


def compute_restaurant_ratings(
    items: Iterable[tuple[Optional[float], int]],
) -> RestaurantRatings:
    """
    Build the restaurant aggregate from (avg_rating, total_reviews) pairs.

    Unrated items add 0 to the total and are excluded from the mean.
    """
    pairs = list(items)
    total = sum(count or 0 for _, count in pairs)
    rated = [float(avg) for avg, _ in pairs if avg is not None]
    return RestaurantRatings(avg_rating=_mean_or_none(rated), total_reviews=total)


# ── Persisting pipeline ────────────────────────────────────────────────────────


@contextlib.asynccontextmanager
async def _serialized(menu_item_id: int) -> AsyncIterator[None]:
    """Hold the per-item lock when serialisation is enabled; no-op otherwise."""
    if not settings.serialize_rating_updates:
        yield
        return

    lock = _item_locks.get(menu_item_id)
    if lock is None:
        lock = asyncio.Lock()
        _item_locks[menu_item_id] = lock
    async with lock:
        yield


async def recompute_restaurant_ratings(
    db: AsyncSession,
    restaurant_id: int,
) -> RestaurantRatings:
    """
    Recompute and persist a restaurant's avg_rating / total_reviews from all of
    its menu items across every category. Does not commit.
    """
    result = await db.execute(
        select(MenuItem.avg_rating, MenuItem.total_reviews)
        .join(MenuCategory, MenuItem.category_id == MenuCategory.id)
        .where(MenuCategory.restaurant_id == restaurant_id)
    )
    ratings = compute_restaurant_ratings(result.all())
    ratings.restaurant_id = restaurant_id

    await db.execute(
        update(Restaurant)
        .where(Restaurant.id == restaurant_id)
        .values(avg_rating=ratings.avg_rating, total_reviews=ratings.total_reviews)
    )
    logger.debug(
        "Restaurant %s ratings: avg=%s total=%d",
        restaurant_id, ratings.avg_rating, ratings.total_reviews,
    )
    return ratings


async def recompute_menu_item_ratings(
    db: AsyncSession,
    menu_item_id: int,
) -> Optional[ItemRatings]:
    """
    Recompute a menu item's five averages and count from its visible reviews,
    then cascade to the owning restaurant and commit.

    Returns None (and writes nothing) when the item no longer exists. The
    review mutation that triggered this has already succeeded or failed on
    its own.
    """
    async with _serialized(menu_item_id):
        owner_stmt = (
            select(MenuItem.id, MenuCategory.restaurant_id)
            .join(MenuCategory, MenuItem.category_id == MenuCategory.id)
            .where(MenuItem.id == menu_item_id)
        )
        if settings.serialize_rating_updates:
            owner_stmt = owner_stmt.with_for_update(of=MenuItem)

        owner = (await db.execute(owner_stmt)).first()
        if owner is None:
            logger.warning(
                "Menu item %s not found, skipping rating recompute", menu_item_id
            )
            return None
        restaurant_id = owner.restaurant_id

        reviews = await db.execute(
            select(
                Review.rating,
                Review.taste_rating,
                Review.quality_rating,
                Review.value_rating,
                Review.presentation_rating,
            ).where(Review.menu_item_id == menu_item_id, Review.is_visible.is_(True))
        )
        ratings = compute_item_ratings(reviews.all())
        ratings.menu_item_id = menu_item_id
        ratings.restaurant_id = restaurant_id

        await db.execute(
            update(MenuItem)
            .where(MenuItem.id == menu_item_id)
            .values(**ratings.column_values())
        )
        logger.debug(
            "Menu item %s ratings: avg=%s total=%d",
            menu_item_id, ratings.avg_rating, ratings.total_reviews,
        )

        ratings.restaurant = await recompute_restaurant_ratings(db, restaurant_id)
        await db.commit()

    return ratings


async def recompute_all_ratings(db: AsyncSession) -> int:
    """Rebuild every menu item's (and so every restaurant's) aggregate. Returns items processed."""
    result = await db.execute(select(MenuItem.id).order_by(MenuItem.id))
    item_ids = list(result.scalars().all())

    processed = 0
    for menu_item_id in item_ids:
        if await recompute_menu_item_ratings(db, menu_item_id) is not None:
            processed += 1

    logger.info("Recomputed ratings for %d menu items", processed)
    return processed
