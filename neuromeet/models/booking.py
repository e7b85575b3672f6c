"""Booking model definitions."""

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Index, Integer, Numeric, String, Text, Time, func, text
from neuromeet.database import Base

BOOKING_STATUSES = ("pending", "confirmed", "cancelled", "completed")
ACTIVE_BOOKING_STATUSES = ("pending", "confirmed")
SESSION_TYPES = ("video", "audio", "in-person")

ACTIVE_SLOT_INDEX = "uq_bookings_active_slot"
ACTIVE_STATUS_CLAUSE = "status IN ('pending', 'confirmed')"


class Booking(Base):
    """A dated reservation consuming one availability slot."""
    __tablename__ = "bookings"
    __table_args__ = (
        # At most one pending/confirmed booking per therapist, date and start time.
        Index(
            ACTIVE_SLOT_INDEX,
            "therapist_id",
            "booking_date",
            "start_time",
            unique=True,
            sqlite_where=text(ACTIVE_STATUS_CLAUSE),
            postgresql_where=text(ACTIVE_STATUS_CLAUSE),
        ),
    )

    id = Column(Integer, primary_key=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    therapist_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    availability_id = Column(Integer, ForeignKey("availability.id"), nullable=False)
    booking_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    status = Column(String, default="pending", nullable=False)
    session_type = Column(String, default="video", nullable=False)
    notes = Column(Text)
    price = Column(Numeric(10, 2), default=0, nullable=False)
    is_paid = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
