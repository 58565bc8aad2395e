"""SQLAlchemy ORM models package."""

from menurate.database import Base
from menurate.models.user import User
from menurate.models.restaurant import Restaurant
from menurate.models.menu import MenuCategory, MenuItem
from menurate.models.review import HelpfulVote, Review

__all__ = ["Base", "User", "Restaurant", "MenuCategory", "MenuItem", "Review", "HelpfulVote"]
