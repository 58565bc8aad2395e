"""Review ORM model — one review per (user, menu item) pair."""

from sqlalchemy import (
    Column, Integer, Text, String, Boolean, Double,
    TIMESTAMP, ForeignKey, UniqueConstraint, Uuid, false, func, true,
)
from sqlalchemy.orm import relationship

from menurate.database import Base


class Review(Base):
    """
    A user's rating of a single dish.

    rating is required (1.0–5.0); the four sub-ratings are independently
    optional. is_visible is cleared by moderation: hidden rows stay stored
    but are excluded from every aggregate.
    """

    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("user_id", "menu_item_id", name="uq_reviews_user_menu_item"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.uid", ondelete="CASCADE"),
        nullable=False,
    )
    menu_item_id = Column(
        Integer,
        ForeignKey("menu_items.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    rating = Column(Double, nullable=False)
    taste_rating = Column(Double, nullable=True)
    quality_rating = Column(Double, nullable=True)
    value_rating = Column(Double, nullable=True)
    presentation_rating = Column(Double, nullable=True)

    title = Column(String(200), nullable=True)
    content = Column(Text, nullable=False)

    # Moderation
    is_visible = Column(Boolean, nullable=False, server_default=true(), default=True)
    is_flagged = Column(Boolean, nullable=False, server_default=false(), default=False)
    helpful_count = Column(Integer, nullable=False, server_default="0", default=0)

    owner_response = Column(Text, nullable=True)
    owner_response_at = Column(TIMESTAMP(timezone=True), nullable=True)

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
    user = relationship("User", back_populates="reviews")
    menu_item = relationship("MenuItem", back_populates="reviews")
    helpful_votes = relationship(
        "HelpfulVote", back_populates="review", cascade="all, delete-orphan"
    )


class HelpfulVote(Base):
    """A user's 'helpful' mark on someone else's review."""

    __tablename__ = "helpful_votes"
    __table_args__ = (
        UniqueConstraint("user_id", "review_id", name="uq_helpful_votes_user_review"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("users.uid", ondelete="CASCADE"),
        nullable=False,
    )
    review_id = Column(
        Integer,
        ForeignKey("reviews.id", ondelete="CASCADE"),
        nullable=False,
    )
    created_at = Column(
        TIMESTAMP(timezone=True), nullable=False, server_default=func.now()
    )

    # Relationships
    review = relationship("Review", back_populates="helpful_votes")
