from contextlib import contextmanager

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lawyer_booking.auth.actor import Actor, ActorRole
from lawyer_booking.core.errors import BookingError, to_http_exception
from lawyer_booking.database import get_db
from lawyer_booking.repositories.appointment_repository import SqlAlchemyAppointmentRepository
from lawyer_booking.repositories.availability_repository import SqlAlchemyAvailabilityRepository
from lawyer_booking.repositories.professional_repository import SqlAlchemyProfessionalDirectory
from lawyer_booking.services.availability_resolver import AvailabilityResolver
from lawyer_booking.services.availability_search import AvailabilitySearch
from lawyer_booking.services.availability_store import AvailabilityStore
from lawyer_booking.services.booking_engine import BookingEngine, ProfessionalLocks
from lawyer_booking.services.conflict_checker import ConflictChecker
from lawyer_booking.services.notifications import NotificationSink

DATABASE_UNAVAILABLE = 'Database unavailable. Verify DATABASE_URL and Postgres credentials.'


@contextmanager
def service_errors():
    try:
        yield
    except BookingError as exc:
        raise to_http_exception(exc) from exc
    except SQLAlchemyError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=DATABASE_UNAVAILABLE,
        ) from exc


def ensure_professional_owner(actor: Actor, professional_id: int) -> None:
    if actor.role != ActorRole.PROFESSIONAL or actor.id != professional_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail='Only the professional can manage their own availability.',
        )


def get_notifier(request: Request) -> NotificationSink:
    return request.app.state.notification_dispatcher


def get_professional_locks(request: Request) -> ProfessionalLocks:
    return request.app.state.professional_locks


def get_availability_store(db: Session = Depends(get_db)) -> AvailabilityStore:
    return AvailabilityStore(SqlAlchemyAvailabilityRepository(db), SqlAlchemyProfessionalDirectory(db))


def get_availability_resolver(db: Session = Depends(get_db)) -> AvailabilityResolver:
    return AvailabilityResolver(SqlAlchemyAvailabilityRepository(db))


def get_availability_search(db: Session = Depends(get_db)) -> AvailabilitySearch:
    return AvailabilitySearch(
        SqlAlchemyProfessionalDirectory(db),
        AvailabilityResolver(SqlAlchemyAvailabilityRepository(db)),
        ConflictChecker(SqlAlchemyAppointmentRepository(db)),
    )


def get_booking_engine(
    db: Session = Depends(get_db),
    notifier: NotificationSink = Depends(get_notifier),
    locks: ProfessionalLocks = Depends(get_professional_locks),
) -> BookingEngine:
    return BookingEngine(
        directory=SqlAlchemyProfessionalDirectory(db),
        resolver=AvailabilityResolver(SqlAlchemyAvailabilityRepository(db)),
        appointments=SqlAlchemyAppointmentRepository(db),
        notifier=notifier,
        locks=locks,
    )
