"""
Review service — every review mutation, each followed by the rating pipeline.

Recompute triggers (synchronous, after the review write is committed and
before the caller gets a response):
  - review created
  - rating or any sub-rating edited
  - review deleted (author or admin)
  - is_visible flipped by moderation

Flagging alone, helpful votes, owner responses and title/content edits leave
the counted set unchanged and do not recompute.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Literal, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from menurate.models import HelpfulVote, MenuCategory, MenuItem, Restaurant, Review, User
from menurate.services.ratings import ItemRatings, recompute_menu_item_ratings

logger = logging.getLogger(__name__)

RATING_FIELDS = (
    "rating",
    "taste_rating",
    "quality_rating",
    "value_rating",
    "presentation_rating",
)

# Columns that may not be cleared through a partial update
_REQUIRED_FIELDS = ("rating", "content")

SortKey = Literal["helpful", "newest", "rating"]

_SORT_COLUMNS = {
    "helpful": (Review.helpful_count.desc(), Review.created_at.desc()),
    "newest": (Review.created_at.desc(), Review.id.desc()),
    "rating": (Review.rating.desc(), Review.created_at.desc()),
}


class ReviewServiceError(Exception):
    """Base class for review operations refused by business rules."""

    code = "REVIEW_ERROR"


class ReviewNotFoundError(ReviewServiceError):
    code = "REVIEW_NOT_FOUND"


class MenuItemNotFoundError(ReviewServiceError):
    code = "MENU_ITEM_NOT_FOUND"


class UserNotFoundError(ReviewServiceError):
    code = "USER_NOT_FOUND"


class DuplicateReviewError(ReviewServiceError):
    """Raised when the user already reviewed this menu item."""

    code = "DUPLICATE_REVIEW"


class ReviewPermissionError(ReviewServiceError):
    code = "ACCESS_DENIED"


class InvalidVoteError(ReviewServiceError):
    code = "INVALID_VOTE"


@dataclass
class ReviewMutation:
    """A written review plus the aggregates recomputed because of it (None if not recomputed)."""

    review: Review
    ratings: Optional[ItemRatings] = None


# ── Lookups ────────────────────────────────────────────────────────────────────


async def _get_user(db: AsyncSession, uid: uuid.UUID) -> User:
    user = await db.get(User, uid)
    if user is None:
        raise UserNotFoundError(f"User {uid} not found")
    return user


async def _get_review(db: AsyncSession, review_id: int) -> Review:
    review = await db.get(Review, review_id)
    if review is None:
        raise ReviewNotFoundError(f"Review {review_id} not found")
    return review


async def _restaurant_for_item(db: AsyncSession, menu_item_id: int) -> Optional[Restaurant]:
    result = await db.execute(
        select(Restaurant)
        .join(MenuCategory, MenuCategory.restaurant_id == Restaurant.id)
        .join(MenuItem, MenuItem.category_id == MenuCategory.id)
        .where(MenuItem.id == menu_item_id)
    )
    return result.scalar_one_or_none()


# ── Mutations that trigger recomputation ───────────────────────────────────────


async def create_review(
    db: AsyncSession,
    user_id: uuid.UUID,
    data: dict,
) -> ReviewMutation:
    """Create a review, one per (user, menu item), then recompute the item."""
    await _get_user(db, user_id)

    menu_item_id = data["menu_item_id"]
    if await db.get(MenuItem, menu_item_id) is None:
        raise MenuItemNotFoundError(f"Menu item {menu_item_id} not found")

    existing = await db.execute(
        select(Review.id).where(
            Review.user_id == user_id, Review.menu_item_id == menu_item_id
        )
    )
    if existing.first() is not None:
        raise DuplicateReviewError("You have already reviewed this item")

    review = Review(user_id=user_id, **data)
    db.add(review)
    try:
        await db.commit()
    except IntegrityError as exc:
        # Lost a race against a concurrent create for the same pair
        await db.rollback()
        raise DuplicateReviewError("You have already reviewed this item") from exc
    await db.refresh(review)

    ratings = await recompute_menu_item_ratings(db, menu_item_id)
    logger.info("Review %s created for menu item %s", review.id, menu_item_id)
    return ReviewMutation(review=review, ratings=ratings)


async def update_review(
    db: AsyncSession,
    review_id: int,
    user_id: uuid.UUID,
    changes: dict,
) -> ReviewMutation:
    """
    Apply the author's edits. Recompute only when a rating field actually
    changed; the edited value replaces the old one, never adds to it.
    """
    review = await _get_review(db, review_id)
    if review.user_id != user_id:
        raise ReviewPermissionError("Access denied")

    changes = {
        k: v for k, v in changes.items()
        if not (k in _REQUIRED_FIELDS and v is None)
    }
    ratings_changed = any(
        field in changes and changes[field] != getattr(review, field)
        for field in RATING_FIELDS
    )
    for key, value in changes.items():
        setattr(review, key, value)
    await db.commit()
    await db.refresh(review)

    ratings = None
    if ratings_changed:
        ratings = await recompute_menu_item_ratings(db, review.menu_item_id)
    return ReviewMutation(review=review, ratings=ratings)


async def delete_review(
    db: AsyncSession,
    review_id: int,
    actor_id: Optional[uuid.UUID] = None,
) -> ReviewMutation:
    """
    Delete a review and recompute its item.
    actor_id None means a trusted moderation call; otherwise the actor must be
    the author or an ADMIN.
    """
    review = await _get_review(db, review_id)
    if actor_id is not None and review.user_id != actor_id:
        actor = await _get_user(db, actor_id)
        if actor.role != "ADMIN":
            raise ReviewPermissionError("Access denied")

    menu_item_id = review.menu_item_id
    await db.delete(review)
    await db.commit()

    ratings = await recompute_menu_item_ratings(db, menu_item_id)
    logger.info("Review %s deleted from menu item %s", review_id, menu_item_id)
    return ReviewMutation(review=review, ratings=ratings)


async def moderate_review(
    db: AsyncSession,
    review_id: int,
    is_visible: Optional[bool] = None,
    is_flagged: Optional[bool] = None,
) -> ReviewMutation:
    """Set moderation flags. Recompute iff visibility actually flipped."""
    review = await _get_review(db, review_id)

    visibility_changed = is_visible is not None and is_visible != review.is_visible
    if is_visible is not None:
        review.is_visible = is_visible
    if is_flagged is not None:
        review.is_flagged = is_flagged
    await db.commit()
    await db.refresh(review)

    ratings = None
    if visibility_changed:
        logger.info(
            "Review %s %s by moderation", review_id, "shown" if is_visible else "hidden"
        )
        ratings = await recompute_menu_item_ratings(db, review.menu_item_id)
    return ReviewMutation(review=review, ratings=ratings)


# ── Mutations that leave aggregates untouched ──────────────────────────────────


async def flag_review(db: AsyncSession, review_id: int, user_id: uuid.UUID) -> Review:
    """Mark a review for moderator attention; visibility is unchanged."""
    await _get_user(db, user_id)
    review = await _get_review(db, review_id)
    review.is_flagged = True
    await db.commit()
    await db.refresh(review)
    return review


async def toggle_helpful_vote(
    db: AsyncSession,
    review_id: int,
    user_id: uuid.UUID,
) -> tuple[Review, bool]:
    """Add the user's helpful vote, or remove it if present. Returns (review, voted)."""
    await _get_user(db, user_id)
    review = await _get_review(db, review_id)
    if review.user_id == user_id:
        raise InvalidVoteError("Cannot vote on your own review")

    result = await db.execute(
        select(HelpfulVote).where(
            HelpfulVote.user_id == user_id, HelpfulVote.review_id == review_id
        )
    )
    vote = result.scalar_one_or_none()

    if vote is not None:
        await db.delete(vote)
        review.helpful_count = max(0, review.helpful_count - 1)
        voted = False
    else:
        db.add(HelpfulVote(user_id=user_id, review_id=review_id))
        review.helpful_count = review.helpful_count + 1
        voted = True

    await db.commit()
    await db.refresh(review)
    return review, voted


async def respond_to_review(
    db: AsyncSession,
    review_id: int,
    user_id: uuid.UUID,
    response: str,
) -> Review:
    """Attach the restaurant owner's (or an admin's) public response."""
    user = await _get_user(db, user_id)
    review = await _get_review(db, review_id)

    restaurant = await _restaurant_for_item(db, review.menu_item_id)
    is_owner = restaurant is not None and restaurant.owner_id == user_id
    if not is_owner and user.role != "ADMIN":
        raise ReviewPermissionError("Access denied")

    review.owner_response = response
    review.owner_response_at = datetime.now(timezone.utc)
    await db.commit()
    await db.refresh(review)
    return review


# ── Reads ──────────────────────────────────────────────────────────────────────


async def list_visible_reviews(
    db: AsyncSession,
    menu_item_id: int,
    sort_by: SortKey = "helpful",
    limit: int = 50,
) -> list[Review]:
    """Visible reviews of one item, best first by the requested key."""
    result = await db.execute(
        select(Review)
        .where(Review.menu_item_id == menu_item_id, Review.is_visible.is_(True))
        .order_by(*_SORT_COLUMNS[sort_by])
        .limit(limit)
    )
    return list(result.scalars().all())


async def list_reviews_for_moderation(
    db: AsyncSession,
    is_flagged: Optional[bool] = None,
    is_visible: Optional[bool] = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Review]:
    """
    Moderation queue across all items, newest first. Unlike the public
    listing this includes hidden reviews; each filter applies only when set.
    """
    stmt = select(Review)
    if is_flagged is not None:
        stmt = stmt.where(Review.is_flagged.is_(is_flagged))
    if is_visible is not None:
        stmt = stmt.where(Review.is_visible.is_(is_visible))
    result = await db.execute(
        stmt.order_by(*_SORT_COLUMNS["newest"]).offset(offset).limit(limit)
    )
    return list(result.scalars().all())
