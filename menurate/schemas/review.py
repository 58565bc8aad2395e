"""Pydantic schemas for review endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


class ReviewCreate(BaseModel):
    """Body for POST /reviews."""

    menu_item_id: int
    rating: float = Field(ge=1, le=5)
    taste_rating: Optional[float] = Field(default=None, ge=1, le=5)
    quality_rating: Optional[float] = Field(default=None, ge=1, le=5)
    value_rating: Optional[float] = Field(default=None, ge=1, le=5)
    presentation_rating: Optional[float] = Field(default=None, ge=1, le=5)
    title: Optional[str] = Field(default=None, max_length=200)
    content: str = Field(min_length=10, max_length=5000)


class ReviewUpdate(BaseModel):
    """
    Body for PATCH /reviews/{id} — every field optional.
    Only fields explicitly sent are applied (exclude_unset), so a sub-rating
    can be cleared by sending null.
    """

    rating: Optional[float] = Field(default=None, ge=1, le=5)
    taste_rating: Optional[float] = Field(default=None, ge=1, le=5)
    quality_rating: Optional[float] = Field(default=None, ge=1, le=5)
    value_rating: Optional[float] = Field(default=None, ge=1, le=5)
    presentation_rating: Optional[float] = Field(default=None, ge=1, le=5)
    title: Optional[str] = Field(default=None, max_length=200)
    content: Optional[str] = Field(default=None, min_length=10, max_length=5000)


class ReviewModeration(BaseModel):
    """Body for PATCH /admin/reviews/{id}."""

    is_visible: Optional[bool] = None
    is_flagged: Optional[bool] = None


class OwnerResponseCreate(BaseModel):
    """Body for POST /reviews/{id}/respond."""

    response: str = Field(min_length=1, max_length=5000)


class ReviewRead(BaseModel):
    """Full review representation returned by the API and pushed over realtime."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: uuid.UUID
    menu_item_id: int
    rating: float
    taste_rating: Optional[float]
    quality_rating: Optional[float]
    value_rating: Optional[float]
    presentation_rating: Optional[float]
    title: Optional[str]
    content: str
    is_visible: bool
    is_flagged: bool
    helpful_count: int
    owner_response: Optional[str]
    owner_response_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime


class ReviewList(BaseModel):
    """Visible reviews for one menu item."""

    menu_item_id: int
    sort_by: Literal["helpful", "newest", "rating"]
    reviews: list[ReviewRead]


class HelpfulVoteResponse(BaseModel):
    """Result of toggling a helpful vote."""

    review_id: int
    voted: bool
    helpful_count: int
