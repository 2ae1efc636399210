"""Professional directory model definitions."""

from sqlalchemy import JSON, Boolean, Column, ForeignKey, Integer, String
from lawyer_booking.database import Base


class Professional(Base):
    """A bookable lawyer; shares its id with the owning user."""
    __tablename__ = "professionals"

    id = Column(Integer, ForeignKey("users.id"), primary_key=True)
    full_name = Column(String, nullable=False, default="")
    verified = Column(Boolean, nullable=False, default=False)
    accepting_bookings = Column(Boolean, nullable=False, default=True)
    practice_areas = Column(JSON, nullable=False, default=list)

    def offers(self, practice_area: str) -> bool:
        wanted = practice_area.strip().lower()
        return any(area.strip().lower() == wanted for area in self.practice_areas or [])
