from datetime import datetime

import pytest

from support import MONDAY, at

from lawyer_booking.core.errors import ValidationError
from lawyer_booking.models.appointment import Appointment, AppointmentStatus
from lawyer_booking.services.conflict_checker import intervals_overlap


def _book(booking, start: datetime, end: datetime, status: AppointmentStatus = AppointmentStatus.PENDING,
          professional_id: int = 1) -> Appointment:
    return booking.appointments.add(
        Appointment(
            client_id=50,
            professional_id=professional_id,
            start_time=start,
            end_time=end,
            status=status.value,
        )
    )


@pytest.mark.parametrize(
    ('first', 'second', 'expected'),
    [
        ((9, 10), (10, 11), False),
        ((9, 11), (10, 12), True),
        ((9, 12), (10, 11), True),
        ((10, 11), (9, 10), False),
        ((9, 10), (9, 10), True),
    ],
)
def test_intervals_overlap_is_half_open_and_symmetric(first, second, expected: bool) -> None:
    a_start, a_end = at(MONDAY, first[0]), at(MONDAY, first[1])
    b_start, b_end = at(MONDAY, second[0]), at(MONDAY, second[1])

    assert intervals_overlap(a_start, a_end, b_start, b_end) is expected
    assert intervals_overlap(b_start, b_end, a_start, a_end) is expected


@pytest.mark.parametrize('status', [AppointmentStatus.PENDING, AppointmentStatus.SCHEDULED, AppointmentStatus.CONFIRMED])
def test_blocking_statuses_conflict(booking, status: AppointmentStatus) -> None:
    _book(booking, at(MONDAY, 10), at(MONDAY, 11), status)

    assert booking.conflicts.has_conflict(1, at(MONDAY, 10, 30), at(MONDAY, 11, 30)) is True


@pytest.mark.parametrize('status', [AppointmentStatus.CANCELLED, AppointmentStatus.COMPLETED, AppointmentStatus.NO_SHOW])
def test_terminal_statuses_never_block(booking, status: AppointmentStatus) -> None:
    _book(booking, at(MONDAY, 10), at(MONDAY, 11), status)

    assert booking.conflicts.has_conflict(1, at(MONDAY, 10), at(MONDAY, 11)) is False


def test_adjacent_appointments_do_not_conflict(booking) -> None:
    _book(booking, at(MONDAY, 10), at(MONDAY, 11))

    assert booking.conflicts.has_conflict(1, at(MONDAY, 11), at(MONDAY, 12)) is False
    assert booking.conflicts.has_conflict(1, at(MONDAY, 9), at(MONDAY, 10)) is False


def test_other_professionals_are_independent(booking) -> None:
    _book(booking, at(MONDAY, 10), at(MONDAY, 11), professional_id=2)

    assert booking.conflicts.has_conflict(1, at(MONDAY, 10), at(MONDAY, 11)) is False


def test_appointment_never_conflicts_with_itself_when_excluded(booking) -> None:
    appointment = _book(booking, at(MONDAY, 10), at(MONDAY, 11))

    assert booking.conflicts.has_conflict(1, at(MONDAY, 10), at(MONDAY, 11)) is True
    assert booking.conflicts.has_conflict(
        1, at(MONDAY, 10), at(MONDAY, 11), exclude_appointment_id=appointment.id
    ) is False


def test_find_conflicts_returns_offending_appointments(booking) -> None:
    first = _book(booking, at(MONDAY, 9), at(MONDAY, 10))
    second = _book(booking, at(MONDAY, 10), at(MONDAY, 11))
    _book(booking, at(MONDAY, 12), at(MONDAY, 13))

    conflicts = booking.conflicts.find_conflicts(1, at(MONDAY, 9, 30), at(MONDAY, 10, 30))

    assert {conflict.id for conflict in conflicts} == {first.id, second.id}


def test_empty_interval_is_rejected(booking) -> None:
    with pytest.raises(ValidationError):
        booking.conflicts.has_conflict(1, at(MONDAY, 10), at(MONDAY, 10))
