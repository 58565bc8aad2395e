"""
Review endpoints — create, edit, delete, vote, respond, flag.

Authentication: X-User-ID header carrying the caller's UUID. The header is
trusted; JWT verification is the gateway's responsibility.
Every mutation that changes the counted review set returns only after the
menu item and restaurant aggregates have been recomputed; realtime
broadcasts run as background tasks after the response is sent.
"""

from __future__ import annotations

import logging
import uuid
from typing import NoReturn

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from menurate.database import get_db
from menurate.schemas.review import (
    HelpfulVoteResponse,
    OwnerResponseCreate,
    ReviewCreate,
    ReviewList,
    ReviewRead,
    ReviewUpdate,
)
from menurate.services import review_service
from menurate.services.realtime import notify_new_review, notify_rating_update
from menurate.services.review_service import (
    DuplicateReviewError,
    InvalidVoteError,
    ReviewPermissionError,
    ReviewServiceError,
    SortKey,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reviews", tags=["reviews"])

_ERROR_STATUS = {
    DuplicateReviewError: status.HTTP_409_CONFLICT,
    ReviewPermissionError: status.HTTP_403_FORBIDDEN,
    InvalidVoteError: status.HTTP_400_BAD_REQUEST,
}


def raise_http(exc: ReviewServiceError) -> NoReturn:
    """Translate a service refusal into an HTTPException (not-found errors → 404)."""
    raise HTTPException(
        status_code=_ERROR_STATUS.get(type(exc), status.HTTP_404_NOT_FOUND),
        detail=str(exc),
        headers={"X-Error-Code": exc.code},
    ) from exc


async def current_user_id(
    x_user_id: str = Header(..., alias="X-User-ID"),
) -> uuid.UUID:
    """Parse and validate X-User-ID header as a UUID."""
    try:
        return uuid.UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid user ID format — must be a UUID",
            headers={"X-Error-Code": "MISSING_USER_ID"},
        )


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.get("/item/{menu_item_id}", response_model=ReviewList)
async def list_item_reviews(
    menu_item_id: int,
    sort_by: SortKey = Query(default="helpful"),
    limit: int = Query(default=50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
) -> ReviewList:
    """Visible reviews of a dish; hidden reviews are never listed."""
    reviews = await review_service.list_visible_reviews(db, menu_item_id, sort_by, limit)
    return ReviewList(
        menu_item_id=menu_item_id,
        sort_by=sort_by,
        reviews=[ReviewRead.model_validate(r) for r in reviews],
    )


@router.post("", status_code=status.HTTP_201_CREATED, response_model=ReviewRead)
async def create_review(
    body: ReviewCreate,
    background_tasks: BackgroundTasks,
    user_id: uuid.UUID = Depends(current_user_id),
    db: AsyncSession = Depends(get_db),
) -> ReviewRead:
    """
    Create a review, recompute the dish and restaurant aggregates, then
    broadcast "newReview" to menuItem:<id> and restaurant:<id>.
    The broadcast is best-effort, runs after the response and can never
    fail this request.
    """
    try:
        mutation = await review_service.create_review(db, user_id, body.model_dump())
    except ReviewServiceError as exc:
        raise_http(exc)

    review = ReviewRead.model_validate(mutation.review)
    if mutation.ratings is not None:
        background_tasks.add_task(
            notify_new_review, review.model_dump(mode="json"), mutation.ratings
        )
        background_tasks.add_task(notify_rating_update, mutation.ratings)
    return review


@router.patch("/{review_id}", response_model=ReviewRead)
async def update_review(
    review_id: int,
    body: ReviewUpdate,
    background_tasks: BackgroundTasks,
    user_id: uuid.UUID = Depends(current_user_id),
    db: AsyncSession = Depends(get_db),
) -> ReviewRead:
    """Author-only edit. Aggregates are recomputed when any rating changed."""
    try:
        mutation = await review_service.update_review(
            db, review_id, user_id, body.model_dump(exclude_unset=True)
        )
    except ReviewServiceError as exc:
        raise_http(exc)

    if mutation.ratings is not None:
        background_tasks.add_task(notify_rating_update, mutation.ratings)
    return ReviewRead.model_validate(mutation.review)


@router.delete("/{review_id}")
async def delete_review(
    review_id: int,
    background_tasks: BackgroundTasks,
    user_id: uuid.UUID = Depends(current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Delete by the author or an ADMIN; aggregates are recomputed."""
    try:
        mutation = await review_service.delete_review(db, review_id, actor_id=user_id)
    except ReviewServiceError as exc:
        raise_http(exc)

    if mutation.ratings is not None:
        background_tasks.add_task(notify_rating_update, mutation.ratings)
    return {"review_id": review_id, "deleted": True}


@router.post("/{review_id}/helpful", response_model=HelpfulVoteResponse)
async def vote_helpful(
    review_id: int,
    user_id: uuid.UUID = Depends(current_user_id),
    db: AsyncSession = Depends(get_db),
) -> HelpfulVoteResponse:
    """Toggle the caller's helpful vote on someone else's review."""
    try:
        review, voted = await review_service.toggle_helpful_vote(db, review_id, user_id)
    except ReviewServiceError as exc:
        raise_http(exc)
    return HelpfulVoteResponse(
        review_id=review.id, voted=voted, helpful_count=review.helpful_count
    )


@router.post("/{review_id}/respond", response_model=ReviewRead)
async def respond_to_review(
    review_id: int,
    body: OwnerResponseCreate,
    user_id: uuid.UUID = Depends(current_user_id),
    db: AsyncSession = Depends(get_db),
) -> ReviewRead:
    """Restaurant owner (or ADMIN) replies publicly to a review."""
    try:
        review = await review_service.respond_to_review(
            db, review_id, user_id, body.response
        )
    except ReviewServiceError as exc:
        raise_http(exc)
    return ReviewRead.model_validate(review)


@router.post("/{review_id}/flag")
async def flag_review(
    review_id: int,
    user_id: uuid.UUID = Depends(current_user_id),
    db: AsyncSession = Depends(get_db),
) -> dict:
    """Flag for moderation. The review stays visible and aggregates are untouched."""
    try:
        await review_service.flag_review(db, review_id, user_id)
    except ReviewServiceError as exc:
        raise_http(exc)
    return {"review_id": review_id, "flagged": True}
