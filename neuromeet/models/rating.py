"""Rating model definitions."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, Text, func
from neuromeet.database import Base


class Rating(Base):
    """A customer's rating of a completed booking."""
    __tablename__ = "ratings"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    therapist_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    booking_id = Column(Integer, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, unique=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text)
    is_anonymous = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
