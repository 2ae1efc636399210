"""User model definitions."""

from sqlalchemy import Column, Integer, String
from lawyer_booking.database import Base


class User(Base):
    """Represents an application user."""
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String, unique=True, index=True)
    hashed_password = Column(String)
    role = Column(String)  # client/professional/admin
    first_name = Column(String)
    last_name = Column(String)
