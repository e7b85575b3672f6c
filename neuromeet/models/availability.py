"""Availability model definitions."""

from sqlalchemy import Boolean, Column, ForeignKey, Integer, String, Time
from neuromeet.database import Base

DAYS_OF_WEEK = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


class Availability(Base):
    """A recurring weekly slot in a therapist's template, independent of any date."""
    __tablename__ = "availability"

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    day_of_week = Column(String, nullable=False)
    is_weekday = Column(Boolean, default=True, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
