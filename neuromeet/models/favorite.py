"""Favorite model definitions."""

from sqlalchemy import Column, DateTime, ForeignKey, Integer, UniqueConstraint, func
from neuromeet.database import Base


class Favorite(Base):
    """A customer's bookmark of a therapist."""
    __tablename__ = "favorites"
    __table_args__ = (UniqueConstraint("user_id", "therapist_id", name="uq_favorites_user_therapist"),)

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    therapist_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, server_default=func.now())
