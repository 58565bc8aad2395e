"""Menu ORM models — categories group the items that reviews are written for."""

from sqlalchemy import (
    Column, Integer, Text, Numeric, Boolean, Double,
    TIMESTAMP, ForeignKey, func, true,
)
from sqlalchemy.orm import relationship

from menurate.database import Base


class MenuCategory(Base):
    """A section of a restaurant's menu (e.g. 'Mains')."""

    __tablename__ = "menu_categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    restaurant_id = Column(
        Integer,
        ForeignKey("restaurants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(Text, nullable=False)
    sort_order = Column(Integer, nullable=False, server_default="0", default=0)

    # Relationships
    restaurant = relationship("Restaurant", back_populates="categories")
    items = relationship(
        "MenuItem", back_populates="category", cascade="all, delete-orphan"
    )


class MenuItem(Base):
    """
    A single dish. The five avg_* columns and total_reviews are derived state,
    recomputed from the visible reviews after every review mutation.
    A null average means no counted review supplied that value.
    """

    __tablename__ = "menu_items"

    id = Column(Integer, primary_key=True, autoincrement=True)
    category_id = Column(
        Integer,
        ForeignKey("menu_categories.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Numeric(10, 2), nullable=True)
    is_available = Column(Boolean, nullable=False, server_default=true(), default=True)

    # Derived aggregates
    avg_rating = Column(Double, nullable=True)
    avg_taste_rating = Column(Double, nullable=True)
    avg_quality_rating = Column(Double, nullable=True)
    avg_value_rating = Column(Double, nullable=True)
    avg_presentation_rating = Column(Double, nullable=True)
    total_reviews = Column(Integer, nullable=False, server_default="0", default=0)

    created_at = Column(
        TIMESTAMP(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at = Column(
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    # Relationships
    category = relationship("MenuCategory", back_populates="items")
    reviews = relationship(
        "Review", back_populates="menu_item", cascade="all, delete-orphan"
    )
