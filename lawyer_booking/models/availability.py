"""Availability model definitions."""

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, Date, DateTime, ForeignKey, Integer, Time
from lawyer_booking.database import Base


class AvailabilityRule(Base):
    """A window of open time, either recurring on a weekday or pinned to one date.

    ``day_of_week`` counts from Sunday (0) to Saturday (6).
    """
    __tablename__ = "availability_rules"
    __table_args__ = (
        CheckConstraint(
            '(day_of_week IS NULL) <> (specific_date IS NULL)',
            name='ck_availability_rules_recurring_xor_override',
        ),
        CheckConstraint('day_of_week BETWEEN 0 AND 6', name='ck_availability_rules_weekday'),
        CheckConstraint('start_time < end_time', name='ck_availability_rules_window'),
    )

    id = Column(Integer, primary_key=True)
    professional_id = Column(Integer, ForeignKey("professionals.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=True)
    specific_date = Column(Date, nullable=True)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime, default=datetime.now)

    @property
    def is_recurring(self) -> bool:
        return self.specific_date is None

    def contains(self, instant) -> bool:
        return self.start_time <= instant < self.end_time
