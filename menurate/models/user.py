"""User ORM model — identity is issued upstream; this row carries name and role."""

import uuid

from sqlalchemy import Column, String, Text, TIMESTAMP, Uuid, func
from sqlalchemy.orm import relationship

from menurate.database import Base


class User(Base):
    """A platform account. Role is one of 'USER' | 'OWNER' | 'ADMIN'."""

    __tablename__ = "users"

    uid = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=True, unique=True)
    role = Column(String(10), nullable=False, server_default="USER")

    created_at = Column(
        TIMESTAMP(timezone=True), nullable=False, server_default=func.now()
    )

    # Relationships
    reviews = relationship("Review", back_populates="user", cascade="all, delete-orphan")
    restaurants = relationship("Restaurant", back_populates="owner")
