"""Appointment booking and the appointment status lifecycle.

Booking holds a per-professional lock and runs the availability check, the
conflict check and the insert in one storage transaction. Storage write
conflicts are retried after a jittered backoff and then reported as
``Conflict``. Notifications are best effort: a failing sink is logged and
never fails the booking or the transition.
"""

import logging
import random
import time as time_module
from contextlib import contextmanager
from datetime import date, datetime, timedelta
from threading import Lock
from typing import Callable

from pydantic import BaseModel, field_validator

from lawyer_booking.auth.actor import ActorRole
from lawyer_booking.core import config
from lawyer_booking.core.clock import to_local_naive
from lawyer_booking.core.errors import (
    Conflict,
    Forbidden,
    InvalidTransition,
    NotFound,
    StorageTimeout,
    ValidationError,
    WriteConflict,
)
from lawyer_booking.models.appointment import (
    TERMINAL_STATUSES,
    Appointment,
    AppointmentStatus,
    MeetingType,
)
from lawyer_booking.repositories.base import AppointmentRepository, ProfessionalDirectory
from lawyer_booking.services.availability_resolver import AvailabilityResolver
from lawyer_booking.services.conflict_checker import ConflictChecker
from lawyer_booking.services.notifications import NotificationSink, NotificationType

logger = logging.getLogger(__name__)

ALLOWED_TRANSITIONS = {
    AppointmentStatus.PENDING: frozenset({
        AppointmentStatus.SCHEDULED,
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELLED,
    }),
    AppointmentStatus.SCHEDULED: frozenset({
        AppointmentStatus.CONFIRMED,
        AppointmentStatus.CANCELLED,
    }),
    AppointmentStatus.CONFIRMED: frozenset({
        AppointmentStatus.COMPLETED,
        AppointmentStatus.CANCELLED,
        AppointmentStatus.NO_SHOW,
    }),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}

STATUS_MESSAGES = {
    AppointmentStatus.CONFIRMED: (NotificationType.APPOINTMENT_CONFIRMED, 'Your appointment has been confirmed'),
    AppointmentStatus.CANCELLED: (NotificationType.APPOINTMENT_CANCELLED, 'Your appointment has been cancelled'),
}
DEFAULT_STATUS_MESSAGE = (NotificationType.APPOINTMENT_UPDATED, 'Your appointment status has been updated')
STATUS_RACE_MESSAGE = 'Appointment status changed in the meantime. Reload it and try again.'


def _clean_text(value: str | None, field_name: str) -> str | None:
    if value is None:
        return None

    normalized = value.strip()
    if not normalized:
        return None

    if len(normalized) > config.MAX_APPOINTMENT_NOTES_LENGTH:
        raise ValueError(f'{field_name} must be {config.MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')

    return normalized


class AppointmentDetails(BaseModel):
    title: str | None = None
    description: str | None = None
    practice_area: str | None = None
    meeting_type: MeetingType = MeetingType.VIRTUAL

    @field_validator('title', 'description', 'practice_area')
    @classmethod
    def validate_text(cls, value: str | None, info) -> str | None:
        return _clean_text(value, info.field_name.replace('_', ' ').capitalize())


def ensure_transition_allowed(current: AppointmentStatus, new_status: AppointmentStatus) -> None:
    if current in TERMINAL_STATUSES:
        raise InvalidTransition(f'Appointment is already {current.value} and can no longer change.')

    if new_status not in ALLOWED_TRANSITIONS[current]:
        raise InvalidTransition(f'Cannot move appointment from {current.value} to {new_status.value}.')


class ProfessionalLocks:
    """In-process lock per professional, acquired with a bounded wait."""

    def __init__(self, timeout_seconds: float = config.STORAGE_TIMEOUT_SECONDS):
        self._timeout_seconds = timeout_seconds
        self._guard = Lock()
        self._locks: dict[int, Lock] = {}

    def _lock_for(self, professional_id: int) -> Lock:
        with self._guard:
            return self._locks.setdefault(professional_id, Lock())

    @contextmanager
    def hold(self, professional_id: int):
        lock = self._lock_for(professional_id)
        if not lock.acquire(timeout=self._timeout_seconds):
            raise StorageTimeout('Another booking for this professional is in progress. Please retry.')
        try:
            yield
        finally:
            lock.release()


class BookingEngine:
    def __init__(
        self,
        directory: ProfessionalDirectory,
        resolver: AvailabilityResolver,
        appointments: AppointmentRepository,
        notifier: NotificationSink,
        locks: ProfessionalLocks,
        clock: Callable[[], datetime] = datetime.now,
        enforce_full_window: bool = config.ENFORCE_FULL_WINDOW_COVERAGE,
        max_attempts: int = config.BOOKING_MAX_ATTEMPTS,
        retry_backoff_seconds: float = config.BOOKING_RETRY_BACKOFF_SECONDS,
        sleep: Callable[[float], None] = time_module.sleep,
    ):
        self._directory = directory
        self._resolver = resolver
        self._appointments = appointments
        self._conflicts = ConflictChecker(appointments)
        self._notifier = notifier
        self._locks = locks
        self._clock = clock
        self._enforce_full_window = enforce_full_window
        self._max_attempts = max(1, max_attempts)
        self._retry_backoff_seconds = retry_backoff_seconds
        self._sleep = sleep

    def create_appointment(
        self,
        client_id: int,
        professional_id: int,
        start_time: datetime,
        end_time: datetime,
        details: AppointmentDetails | None = None,
    ) -> Appointment:
        details = details or AppointmentDetails()
        start_time, end_time = self._validate_window(start_time, end_time)

        professional = self._directory.get(professional_id)
        if professional is None:
            raise NotFound('Professional not found.')
        if not professional.verified or not professional.accepting_bookings:
            raise Conflict('This professional is not accepting bookings.')

        appointment = self._book_with_retry(client_id, professional_id, start_time, end_time, details)
        logger.info(
            'Appointment %s requested by client %s with professional %s for %s-%s',
            appointment.id,
            client_id,
            professional_id,
            start_time.isoformat(),
            end_time.isoformat(),
        )

        self._notify(
            professional_id,
            'New Appointment Request',
            f'You have a new appointment request for {start_time:%Y-%m-%d %H:%M}',
            NotificationType.APPOINTMENT_REQUEST,
            {'appointmentId': appointment.id},
        )
        return appointment

    def transition_status(
        self,
        appointment_id: int,
        actor_id: int,
        actor_role: ActorRole | str,
        new_status: AppointmentStatus | str,
        notes: str | None = None,
    ) -> Appointment:
        try:
            new_status = AppointmentStatus(new_status)
        except ValueError as exc:
            raise ValidationError(f'Unknown appointment status: {new_status}.') from exc

        try:
            notes = _clean_text(notes, 'Notes')
        except ValueError as exc:
            raise ValidationError(str(exc)) from exc

        appointment = self._appointments.get(appointment_id)
        if appointment is None:
            raise NotFound('Appointment not found.')

        role = self._authorize_transition(appointment, actor_id, actor_role, new_status)
        current = appointment.current_status
        ensure_transition_allowed(current, new_status)

        professional_id = appointment.professional_id
        client_id = appointment.client_id
        start_time, end_time = appointment.start_time, appointment.end_time

        try:
            with self._appointments.atomic():
                if new_status == AppointmentStatus.CONFIRMED and self._conflicts.has_conflict(
                    professional_id, start_time, end_time, exclude_appointment_id=appointment_id
                ):
                    raise Conflict('This time overlaps another booked appointment.')

                updated = self._appointments.update_status(appointment_id, current, new_status, notes)
                if updated is None:
                    raise InvalidTransition(STATUS_RACE_MESSAGE)
        except WriteConflict as exc:
            logger.warning('Write conflict moving appointment %s to %s: %s', appointment_id, new_status.value, exc)
            raise InvalidTransition(STATUS_RACE_MESSAGE) from exc

        logger.info(
            'Appointment %s moved from %s to %s by %s %s',
            appointment_id,
            current.value,
            new_status.value,
            role.value,
            actor_id,
        )

        notification_type, message = STATUS_MESSAGES.get(new_status, DEFAULT_STATUS_MESSAGE)
        if role == ActorRole.CLIENT:
            recipient = professional_id
            message = 'An appointment has been cancelled by the client'
        else:
            recipient = client_id
        self._notify(
            recipient,
            'Appointment Update',
            message,
            notification_type,
            {'appointmentId': appointment_id, 'status': new_status.value},
        )
        return updated

    def cancel_appointment(self, appointment_id: int, client_id: int, reason: str | None = None) -> Appointment:
        return self.transition_status(
            appointment_id,
            client_id,
            ActorRole.CLIENT,
            AppointmentStatus.CANCELLED,
            reason,
        )

    def get_appointment(self, appointment_id: int, actor_id: int, actor_role: ActorRole | str) -> Appointment:
        appointment = self._appointments.get(appointment_id)
        if appointment is None:
            raise NotFound('Appointment not found.')

        try:
            role = ActorRole(actor_role)
        except ValueError as exc:
            raise Forbidden('Unknown role.') from exc

        if role == ActorRole.CLIENT and appointment.client_id == actor_id:
            return appointment
        if role == ActorRole.PROFESSIONAL and appointment.professional_id == actor_id:
            return appointment
        raise Forbidden('You do not have access to this appointment.')

    def list_professional_appointments(
        self,
        professional_id: int,
        status: AppointmentStatus | None = None,
        on_date: date | None = None,
    ) -> list[Appointment]:
        if on_date is None:
            return self._appointments.list_for_professional(professional_id, status=status)

        day_start = datetime.combine(on_date, datetime.min.time())
        return self._appointments.list_for_professional(
            professional_id,
            status=status,
            start_time=day_start,
            end_time=day_start + timedelta(days=1),
        )

    def list_client_appointments(self, client_id: int, status: AppointmentStatus | None = None) -> list[Appointment]:
        return self._appointments.list_for_client(client_id, status=status)

    def list_pending_requests(self, professional_id: int) -> list[Appointment]:
        return self._appointments.list_pending(professional_id)

    def _validate_window(self, start_time: datetime, end_time: datetime) -> tuple[datetime, datetime]:
        start_time = to_local_naive(start_time)
        end_time = to_local_naive(end_time)

        if start_time >= end_time:
            raise ValidationError('Start time must be before end time.')

        if start_time <= self._clock():
            raise ValidationError('Appointments must be scheduled in the future.')

        return start_time, end_time

    def _authorize_transition(
        self,
        appointment: Appointment,
        actor_id: int,
        actor_role: ActorRole | str,
        new_status: AppointmentStatus,
    ) -> ActorRole:
        try:
            role = ActorRole(actor_role)
        except ValueError as exc:
            raise Forbidden('Unknown role.') from exc

        if role == ActorRole.PROFESSIONAL:
            if appointment.professional_id != actor_id:
                raise Forbidden('Only the professional who owns this appointment can update it.')
            return role

        if role == ActorRole.CLIENT:
            if appointment.client_id != actor_id:
                raise Forbidden('Only the client who booked this appointment can cancel it.')
            if new_status != AppointmentStatus.CANCELLED:
                raise InvalidTransition('Clients can only cancel their appointments.')
            return role

        raise Forbidden('Only the client or the professional of an appointment can change it.')

    def _is_bookable_window(self, professional_id: int, start_time: datetime, end_time: datetime) -> bool:
        if self._enforce_full_window:
            return self._resolver.covers(professional_id, start_time, end_time)
        return self._resolver.is_open(professional_id, start_time.date(), start_time.time())

    def _book_with_retry(
        self,
        client_id: int,
        professional_id: int,
        start_time: datetime,
        end_time: datetime,
        details: AppointmentDetails,
    ) -> Appointment:
        attempt = 1
        while True:
            try:
                return self._book_once(client_id, professional_id, start_time, end_time, details)
            except WriteConflict as exc:
                if attempt >= self._max_attempts:
                    logger.warning(
                        'Booking for professional %s at %s abandoned after %s attempts: %s',
                        professional_id,
                        start_time.isoformat(),
                        attempt,
                        exc,
                    )
                    raise Conflict('This time is already booked.') from exc

                delay = random.uniform(self._retry_backoff_seconds, self._retry_backoff_seconds * 2)
                logger.warning(
                    'Write conflict booking professional %s (attempt %s), retrying in %.3fs',
                    professional_id,
                    attempt,
                    delay,
                )
                self._sleep(delay)
                attempt += 1

    def _book_once(
        self,
        client_id: int,
        professional_id: int,
        start_time: datetime,
        end_time: datetime,
        details: AppointmentDetails,
    ) -> Appointment:
        with self._locks.hold(professional_id):
            with self._appointments.atomic():
                self._appointments.lock_professional(professional_id)

                if not self._is_bookable_window(professional_id, start_time, end_time):
                    raise Conflict('The professional is not available at this time.')

                conflicts = self._conflicts.find_conflicts(professional_id, start_time, end_time)
                if conflicts:
                    logger.warning(
                        'Booking for professional %s at %s overlaps appointment(s) %s',
                        professional_id,
                        start_time.isoformat(),
                        [conflict.id for conflict in conflicts],
                    )
                    raise Conflict('This time is already booked.')

                appointment = self._appointments.add(
                    Appointment(
                        client_id=client_id,
                        professional_id=professional_id,
                        start_time=start_time,
                        end_time=end_time,
                        status=AppointmentStatus.PENDING.value,
                        title=details.title,
                        description=details.description,
                        practice_area=details.practice_area,
                        meeting_type=details.meeting_type.value,
                    )
                )
        return appointment

    def _notify(
        self,
        user_id: int,
        title: str,
        message: str,
        notification_type: NotificationType,
        context_data: dict,
    ) -> None:
        try:
            self._notifier.notify(user_id, title, message, notification_type.value, context_data)
        except Exception:
            logger.exception('Failed to send %s notification to user %s', notification_type.value, user_id)
