"""Storage interfaces used by the booking core and their shared SQLAlchemy plumbing."""

import logging
from contextlib import contextmanager
from datetime import date, datetime, time
from typing import ContextManager, Iterable, Protocol

from sqlalchemy import text
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from lawyer_booking.core import config
from lawyer_booking.core.errors import StorageTimeout, StorageUnavailable, WriteConflict
from lawyer_booking.models.appointment import Appointment, AppointmentStatus
from lawyer_booking.models.availability import AvailabilityRule
from lawyer_booking.models.professional import Professional

logger = logging.getLogger(__name__)

WRITE_CONFLICT_PGCODES = {'40001', '40P01'}
TIMEOUT_PGCODES = {'55P03', '57014'}


class ProfessionalDirectory(Protocol):
    def get(self, professional_id: int) -> Professional | None: ...

    def list_bookable(self, practice_area: str | None = None) -> list[Professional]: ...


class AvailabilityRepository(Protocol):
    def atomic(self) -> ContextManager[None]: ...

    def get(self, rule_id: int) -> AvailabilityRule | None: ...

    def add(self, rule: AvailabilityRule) -> AvailabilityRule: ...

    def delete(self, rule: AvailabilityRule) -> None: ...

    def update(self, rule: AvailabilityRule, start_time: time, end_time: time, active: bool) -> AvailabilityRule: ...

    def list_for_professional(self, professional_id: int) -> list[AvailabilityRule]: ...

    def overrides_between(self, professional_id: int, start_date: date, end_date: date) -> list[AvailabilityRule]: ...

    def overrides_on(self, professional_id: int, day: date) -> list[AvailabilityRule]: ...

    def recurring_on(self, professional_id: int, day_of_week: int) -> list[AvailabilityRule]: ...

    def replace_recurring(self, professional_id: int, rules: Iterable[AvailabilityRule]) -> list[AvailabilityRule]: ...


class AppointmentRepository(Protocol):
    def atomic(self) -> ContextManager[None]: ...

    def lock_professional(self, professional_id: int) -> None: ...

    def get(self, appointment_id: int) -> Appointment | None: ...

    def add(self, appointment: Appointment) -> Appointment: ...

    def find_overlapping(
        self,
        professional_id: int,
        start_time: datetime,
        end_time: datetime,
        statuses: Iterable[AppointmentStatus],
        exclude_appointment_id: int | None = None,
    ) -> list[Appointment]: ...

    def update_status(
        self,
        appointment_id: int,
        expected_status: AppointmentStatus,
        new_status: AppointmentStatus,
        notes: str | None = None,
    ) -> Appointment | None: ...

    def list_for_professional(
        self,
        professional_id: int,
        status: AppointmentStatus | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> list[Appointment]: ...

    def list_for_client(self, client_id: int, status: AppointmentStatus | None = None) -> list[Appointment]: ...

    def list_pending(self, professional_id: int) -> list[Appointment]: ...


def _pgcode(exc: OperationalError) -> str | None:
    orig = getattr(exc, 'orig', None)
    return getattr(orig, 'pgcode', None) or getattr(orig, 'sqlstate', None)


def translate_operational_error(exc: OperationalError) -> Exception:
    code = _pgcode(exc)
    message = str(exc).lower()
    if code in WRITE_CONFLICT_PGCODES or 'deadlock detected' in message:
        return WriteConflict(str(exc.orig))
    if code in TIMEOUT_PGCODES or 'database is locked' in message or 'timeout' in message:
        return StorageTimeout('Storage did not respond in time. Please retry.')
    return StorageUnavailable('Database unavailable. Verify DATABASE_URL and Postgres credentials.')


class SqlAlchemyRepository:
    def __init__(self, db: Session):
        self.db = db

    def _apply_timeouts(self) -> None:
        if self.db.get_bind().dialect.name != 'postgresql':
            return
        timeout_ms = int(config.STORAGE_TIMEOUT_SECONDS * 1000)
        self.db.execute(text(f'SET LOCAL lock_timeout = {timeout_ms}'))
        self.db.execute(text(f'SET LOCAL statement_timeout = {timeout_ms}'))

    @contextmanager
    def atomic(self):
        """Run the block as one transaction, committing on success."""
        try:
            self._apply_timeouts()
            yield
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.warning('Write rejected by a storage constraint: %s', exc.orig)
            raise WriteConflict(str(exc.orig)) from exc
        except OperationalError as exc:
            self.db.rollback()
            raise translate_operational_error(exc) from exc
        except Exception:
            self.db.rollback()
            raise
