"""
Moderation endpoints — all protected by X-Service-Token header.
Called by the admin console backend, never directly by end users.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from menurate.config import settings
from menurate.database import get_db
from menurate.routers.reviews import raise_http
from menurate.schemas.ratings import RecomputeSummary
from menurate.schemas.review import ReviewModeration, ReviewRead
from menurate.services import review_service
from menurate.services.ratings import recompute_all_ratings
from menurate.services.realtime import notify_rating_update
from menurate.services.review_service import ReviewServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


# ── Auth dependency ──────────────────────────────────────────────────────────


async def verify_service_token(
    x_service_token: str = Header(..., alias="X-Service-Token"),
) -> None:
    """Verify that the inter-service token matches the configured secret."""
    if x_service_token != settings.service_token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid service token",
            headers={"WWW-Authenticate": "Bearer"},
        )


# ── Endpoints ────────────────────────────────────────────────────────────────


@router.get("/reviews", response_model=list[ReviewRead])
async def moderation_queue(
    is_flagged: Optional[bool] = Query(default=None),
    is_visible: Optional[bool] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    db: AsyncSession = Depends(get_db),
    _: None = Depends(verify_service_token),
) -> list[ReviewRead]:
    """Reviews across all items, hidden ones included, newest first."""
    reviews = await review_service.list_reviews_for_moderation(
        db, is_flagged=is_flagged, is_visible=is_visible, limit=limit, offset=offset
    )
    return [ReviewRead.model_validate(r) for r in reviews]


@router.patch("/reviews/{review_id}", response_model=ReviewRead)
async def moderate_review(
    review_id: int,
    background_tasks: BackgroundTasks,
    body: ReviewModeration,
    db: AsyncSession = Depends(get_db),
    _: None = Depends(verify_service_token),
) -> ReviewRead:
    """
    Hide/unhide and flag/unflag a review.
    Hiding or unhiding changes the counted set, so aggregates are recomputed;
    a flag change alone is not.
    """
    try:
        mutation = await review_service.moderate_review(
            db, review_id, is_visible=body.is_visible, is_flagged=body.is_flagged
        )
    except ReviewServiceError as exc:
        raise_http(exc)

    if mutation.ratings is not None:
        background_tasks.add_task(notify_rating_update, mutation.ratings)
    return ReviewRead.model_validate(mutation.review)


@router.delete("/reviews/{review_id}")
async def delete_review(
    review_id: int,
    background_tasks: BackgroundTasks,
    db: AsyncSession = Depends(get_db),
    _: None = Depends(verify_service_token),
) -> dict:
    """Remove a review outright; aggregates are recomputed."""
    try:
        mutation = await review_service.delete_review(db, review_id)
    except ReviewServiceError as exc:
        raise_http(exc)

    if mutation.ratings is not None:
        background_tasks.add_task(notify_rating_update, mutation.ratings)
    return {"review_id": review_id, "deleted": True}


@router.post("/ratings/recompute", response_model=RecomputeSummary)
async def recompute_ratings(
    db: AsyncSession = Depends(get_db),
    _: None = Depends(verify_service_token),
) -> RecomputeSummary:
    """Rebuild every menu item and restaurant aggregate from the review rows."""
    processed = await recompute_all_ratings(db)
    return RecomputeSummary(menu_items_processed=processed)
