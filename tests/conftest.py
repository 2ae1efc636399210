from types import SimpleNamespace

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from support import (
    NOW,
    FakeAppointmentRepository,
    FakeAvailabilityRepository,
    FakeProfessionalDirectory,
    RecordingNotifier,
)

from lawyer_booking.database import Base
from lawyer_booking.services.availability_resolver import AvailabilityResolver
from lawyer_booking.services.availability_search import AvailabilitySearch
from lawyer_booking.services.availability_store import AvailabilityStore
from lawyer_booking.services.booking_engine import BookingEngine, ProfessionalLocks
from lawyer_booking.services.conflict_checker import ConflictChecker


@pytest.fixture
def booking():
    directory = FakeProfessionalDirectory()
    rules = FakeAvailabilityRepository()
    appointments = FakeAppointmentRepository()
    notifier = RecordingNotifier()
    resolver = AvailabilityResolver(rules)
    conflicts = ConflictChecker(appointments)
    sleeps: list[float] = []

    def make_engine(**overrides):
        options = {
            'directory': directory,
            'resolver': resolver,
            'appointments': appointments,
            'notifier': notifier,
            'locks': ProfessionalLocks(timeout_seconds=2),
            'clock': lambda: NOW,
            'enforce_full_window': True,
            'max_attempts': 2,
            'retry_backoff_seconds': 0.01,
            'sleep': sleeps.append,
        }
        options.update(overrides)
        return BookingEngine(**options)

    return SimpleNamespace(
        directory=directory,
        rules=rules,
        appointments=appointments,
        notifier=notifier,
        resolver=resolver,
        conflicts=conflicts,
        store=AvailabilityStore(rules, directory),
        search=AvailabilitySearch(directory, resolver, conflicts, slot_minutes=60),
        engine=make_engine(),
        make_engine=make_engine,
        sleeps=sleeps,
    )


@pytest.fixture
def sqlite_engine():
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    try:
        yield engine
    finally:
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture
def session_factory(sqlite_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=sqlite_engine)


@pytest.fixture
def db_session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()
