"""User model definitions."""

from sqlalchemy import Column, DateTime, Integer, Numeric, String, Text, func
from neuromeet.database import Base

ROLES = ("admin", "customer", "therapist")
STATUSES = ("active", "inactive", "pending", "suspended")


class User(Base):
    """Represents an application user. Therapist-only fields stay null for other roles."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    hashed_password = Column(String, nullable=False)
    role = Column(String, default="customer", nullable=False)  # admin/customer/therapist
    status = Column(String, default="pending", nullable=False)
    phone = Column(String)
    specialty = Column(String)
    license_number = Column(String)
    education_background = Column(Text)
    years_of_experience = Column(Integer)
    bio = Column(Text)
    session_fee = Column(Numeric(10, 2))
    last_login = Column(DateTime)
    created_at = Column(DateTime, server_default=func.now())

    @property
    def is_therapist(self) -> bool:
        return self.role == "therapist"

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"
