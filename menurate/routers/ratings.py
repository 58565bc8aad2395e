"""Read-only endpoints for the derived rating aggregates."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from menurate.database import get_db
from menurate.models import MenuItem, Restaurant
from menurate.schemas.ratings import MenuItemRatings, RestaurantRatings

router = APIRouter(tags=["ratings"])


@router.get("/menu-items/{menu_item_id}/ratings", response_model=MenuItemRatings)
async def menu_item_ratings(
    menu_item_id: int,
    db: AsyncSession = Depends(get_db),
) -> MenuItemRatings:
    item = await db.get(MenuItem, menu_item_id)
    if item is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Menu item not found",
            headers={"X-Error-Code": "MENU_ITEM_NOT_FOUND"},
        )
    return MenuItemRatings(
        menu_item_id=item.id,
        avg_rating=item.avg_rating,
        avg_taste_rating=item.avg_taste_rating,
        avg_quality_rating=item.avg_quality_rating,
        avg_value_rating=item.avg_value_rating,
        avg_presentation_rating=item.avg_presentation_rating,
        total_reviews=item.total_reviews,
    )


@router.get("/restaurants/{restaurant_id}/ratings", response_model=RestaurantRatings)
async def restaurant_ratings(
    restaurant_id: int,
    db: AsyncSession = Depends(get_db),
) -> RestaurantRatings:
    restaurant = await db.get(Restaurant, restaurant_id)
    if restaurant is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Restaurant not found",
            headers={"X-Error-Code": "RESTAURANT_NOT_FOUND"},
        )
    return RestaurantRatings(
        restaurant_id=restaurant.id,
        avg_rating=restaurant.avg_rating,
        total_reviews=restaurant.total_reviews,
    )
