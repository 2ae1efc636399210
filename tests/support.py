import os
from contextlib import contextmanager
from datetime import date, datetime, time
from itertools import count
from threading import RLock


os.environ.setdefault('DATABASE_URL', 'sqlite://')

from lawyer_booking.models import notification, user  # noqa: E402,F401
from lawyer_booking.models.appointment import Appointment, AppointmentStatus  # noqa: E402
from lawyer_booking.models.availability import AvailabilityRule  # noqa: E402
from lawyer_booking.models.professional import Professional  # noqa: E402

# 2030-01-07 is a Monday; every test runs "now" at 08:00 that morning.
NOW = datetime(2030, 1, 7, 8, 0)
MONDAY = date(2030, 1, 7)
TUESDAY = date(2030, 1, 8)


class FakeProfessionalDirectory:
    def __init__(self):
        self.professionals: dict[int, Professional] = {}

    def add(self, professional_id, full_name='', verified=True, accepting_bookings=True, practice_areas=None):
        professional = Professional(
            id=professional_id,
            full_name=full_name or f'Professional {professional_id}',
            verified=verified,
            accepting_bookings=accepting_bookings,
            practice_areas=list(practice_areas or []),
        )
        self.professionals[professional_id] = professional
        return professional

    def get(self, professional_id):
        return self.professionals.get(professional_id)

    def list_bookable(self, practice_area=None):
        candidates = [
            professional
            for professional in self.professionals.values()
            if professional.verified and professional.accepting_bookings
            and (not practice_area or professional.offers(practice_area))
        ]
        return sorted(candidates, key=lambda professional: (professional.full_name, professional.id))


class FakeAvailabilityRepository:
    def __init__(self):
        self.rules: dict[int, AvailabilityRule] = {}
        self.recurring_lookups: list[tuple[int, int]] = []
        self._ids = count(1)
        self._lock = RLock()

    @contextmanager
    def atomic(self):
        with self._lock:
            snapshot = dict(self.rules)
            try:
                yield
            except Exception:
                self.rules = snapshot
                raise

    def get(self, rule_id):
        return self.rules.get(rule_id)

    def add(self, rule):
        rule.id = next(self._ids)
        if rule.active is None:
            rule.active = True
        self.rules[rule.id] = rule
        return rule

    def delete(self, rule):
        self.rules.pop(rule.id, None)

    def update(self, rule, start_time, end_time, active):
        rule.start_time = start_time
        rule.end_time = end_time
        rule.active = active
        return rule

    def list_for_professional(self, professional_id):
        return [rule for rule in self.rules.values() if rule.professional_id == professional_id]

    def overrides_between(self, professional_id, start_date, end_date):
        return [
            rule
            for rule in self.list_for_professional(professional_id)
            if rule.specific_date is not None and start_date <= rule.specific_date <= end_date
        ]

    def overrides_on(self, professional_id, day):
        return [rule for rule in self.list_for_professional(professional_id) if rule.specific_date == day]

    def recurring_on(self, professional_id, day_of_week):
        self.recurring_lookups.append((professional_id, day_of_week))
        return [
            rule
            for rule in self.list_for_professional(professional_id)
            if rule.specific_date is None and rule.day_of_week == day_of_week and rule.active
        ]

    def replace_recurring(self, professional_id, rules):
        for rule in list(self.list_for_professional(professional_id)):
            if rule.specific_date is None:
                self.rules.pop(rule.id)
        return [self.add(rule) for rule in rules]


class FakeAppointmentRepository:
    def __init__(self):
        self.appointments: dict[int, Appointment] = {}
        self.locked_professionals: list[int] = []
        self.add_failures: list[Exception] = []
        self._ids = count(1)
        self._lock = RLock()

    @contextmanager
    def atomic(self):
        with self._lock:
            snapshot = {key: (value.status, value.notes) for key, value in self.appointments.items()}
            try:
                yield
            except Exception:
                for key in list(self.appointments):
                    if key not in snapshot:
                        del self.appointments[key]
                    else:
                        self.appointments[key].status, self.appointments[key].notes = snapshot[key]
                raise

    def lock_professional(self, professional_id):
        self.locked_professionals.append(professional_id)

    def get(self, appointment_id):
        return self.appointments.get(appointment_id)

    def add(self, appointment):
        if self.add_failures:
            raise self.add_failures.pop(0)
        appointment.id = next(self._ids)
        appointment.created_at = datetime.now()
        self.appointments[appointment.id] = appointment
        return appointment

    def find_overlapping(self, professional_id, start_time, end_time, statuses, exclude_appointment_id=None):
        wanted = {status.value for status in statuses}
        return [
            appointment
            for appointment in self.appointments.values()
            if appointment.professional_id == professional_id
            and appointment.status in wanted
            and appointment.id != exclude_appointment_id
            and appointment.overlaps(start_time, end_time)
        ]

    def update_status(self, appointment_id, expected_status, new_status, notes=None):
        appointment = self.appointments.get(appointment_id)
        if appointment is None or appointment.status != expected_status.value:
            return None
        appointment.status = new_status.value
        if notes is not None:
            appointment.notes = notes
        return appointment

    def list_for_professional(self, professional_id, status=None, start_time=None, end_time=None):
        return sorted(
            (
                appointment
                for appointment in self.appointments.values()
                if appointment.professional_id == professional_id
                and (status is None or appointment.status == status.value)
                and (start_time is None or appointment.start_time >= start_time)
                and (end_time is None or appointment.start_time < end_time)
            ),
            key=lambda appointment: (appointment.start_time, appointment.id),
        )

    def list_for_client(self, client_id, status=None):
        return sorted(
            (
                appointment
                for appointment in self.appointments.values()
                if appointment.client_id == client_id and (status is None or appointment.status == status.value)
            ),
            key=lambda appointment: (appointment.start_time, appointment.id),
        )

    def list_pending(self, professional_id):
        return sorted(
            (
                appointment
                for appointment in self.appointments.values()
                if appointment.professional_id == professional_id
                and appointment.status == AppointmentStatus.PENDING.value
            ),
            key=lambda appointment: appointment.id,
            reverse=True,
        )


class RecordingNotifier:
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: list[dict] = []

    def notify(self, user_id, title, message, type, context_data=None):
        if self.fail:
            raise RuntimeError('notification backend is down')
        self.sent.append({
            'user_id': user_id,
            'title': title,
            'message': message,
            'type': type,
            'context_data': context_data or {},
        })


def recurring_rule(professional_id, day_of_week, start, end, active=True):
    return AvailabilityRule(
        professional_id=professional_id,
        day_of_week=day_of_week,
        start_time=start,
        end_time=end,
        active=active,
    )


def override_rule(professional_id, specific_date, start, end, active=True):
    return AvailabilityRule(
        professional_id=professional_id,
        specific_date=specific_date,
        start_time=start,
        end_time=end,
        active=active,
    )


def at(day: date, hour: int, minute: int = 0) -> datetime:
    return datetime.combine(day, time(hour, minute))
