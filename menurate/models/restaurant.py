"""Restaurant ORM model with its derived rating aggregate."""

from sqlalchemy import (
    Column, Integer, Text, Boolean, Double,
    TIMESTAMP, ForeignKey, Uuid, func, true,
)
from sqlalchemy.orm import relationship

from menurate.database import Base


class Restaurant(Base):
    """
    A restaurant owning a menu of categories and items.
    avg_rating / total_reviews are derived from the menu items' aggregates
    by the rating aggregator and are never written by user actions.
    """

    __tablename__ = "restaurants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    owner_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.uid", ondelete="SET NULL"),
        nullable=True,
    )
    name = Column(Text, nullable=False)
    address = Column(Text, nullable=True)
    city = Column(Text, nullable=True)
    cuisine_type = Column(Text, nullable=True)

    # Derived from item averages, not raw reviews
    avg_rating = Column(Double, nullable=True)
    total_reviews = Column(Integer, nullable=False, server_default="0", default=0)

    is_active = Column(Boolean, nullable=False, server_default=true(), default=True)
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
    owner = relationship("User", back_populates="restaurants")
    categories = relationship(
        "MenuCategory", back_populates="restaurant", cascade="all, delete-orphan"
    )
