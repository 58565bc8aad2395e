"""Pydantic schemas for derived rating aggregates."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict


class MenuItemRatings(BaseModel):
    """Aggregate ratings of a single dish. None means no counted review supplied it."""

    model_config = ConfigDict(from_attributes=True)

    menu_item_id: int
    avg_rating: Optional[float] = None
    avg_taste_rating: Optional[float] = None
    avg_quality_rating: Optional[float] = None
    avg_value_rating: Optional[float] = None
    avg_presentation_rating: Optional[float] = None
    total_reviews: int = 0


class RestaurantRatings(BaseModel):
    """Restaurant aggregate: mean of rated items, sum of all items' counts."""

    model_config = ConfigDict(from_attributes=True)

    restaurant_id: int
    avg_rating: Optional[float] = None
    total_reviews: int = 0


class RecomputeSummary(BaseModel):
    """Response for POST /admin/ratings/recompute."""

    menu_items_processed: int
