from datetime import datetime

from lawyer_booking.core.errors import ValidationError
from lawyer_booking.models.appointment import BLOCKING_STATUSES, Appointment
from lawyer_booking.repositories.base import AppointmentRepository


def intervals_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    return start_a < end_b and end_a > start_b


class ConflictChecker:
    def __init__(self, appointments: AppointmentRepository):
        self._appointments = appointments

    def find_conflicts(
        self,
        professional_id: int,
        start_time: datetime,
        end_time: datetime,
        exclude_appointment_id: int | None = None,
    ) -> list[Appointment]:
        if start_time >= end_time:
            raise ValidationError('Start time must be before end time.')

        return self._appointments.find_overlapping(
            professional_id,
            start_time,
            end_time,
            BLOCKING_STATUSES,
            exclude_appointment_id=exclude_appointment_id,
        )

    def has_conflict(
        self,
        professional_id: int,
        start_time: datetime,
        end_time: datetime,
        exclude_appointment_id: int | None = None,
    ) -> bool:
        return bool(self.find_conflicts(professional_id, start_time, end_time, exclude_appointment_id))
