"""Pydantic schemas package."""

from menurate.schemas.review import (
    HelpfulVoteResponse,
    OwnerResponseCreate,
    ReviewCreate,
    ReviewList,
    ReviewModeration,
    ReviewRead,
    ReviewUpdate,
)
from menurate.schemas.ratings import (
    MenuItemRatings,
    RecomputeSummary,
    RestaurantRatings,
)

__all__ = [
    "ReviewCreate", "ReviewUpdate", "ReviewRead", "ReviewList",
    "ReviewModeration", "OwnerResponseCreate", "HelpfulVoteResponse",
    "MenuItemRatings", "RestaurantRatings", "RecomputeSummary",
]
