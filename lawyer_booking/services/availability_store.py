import logging
from contextlib import contextmanager
from datetime import date, time, timedelta
from typing import Iterable, NamedTuple

from lawyer_booking.core.clock import to_wall_clock, weekday_index
from lawyer_booking.core.errors import Conflict, NotFound, ValidationError, WriteConflict
from lawyer_booking.models.availability import AvailabilityRule
from lawyer_booking.repositories.base import AvailabilityRepository, ProfessionalDirectory

logger = logging.getLogger(__name__)

DAYS_PER_WEEK = 7


class WeeklyWindow(NamedTuple):
    day_of_week: int
    start_time: time
    end_time: time
    active: bool = True


def build_rule(
    professional_id: int,
    start_time: time,
    end_time: time,
    day_of_week: int | None = None,
    specific_date: date | None = None,
    active: bool = True,
) -> AvailabilityRule:
    if (day_of_week is None) == (specific_date is None):
        raise ValidationError('A rule needs exactly one of day_of_week or specific_date.')

    if day_of_week is not None and not 0 <= day_of_week < DAYS_PER_WEEK:
        raise ValidationError('Day of week must be a number between 0 (Sunday) and 6 (Saturday).')

    start_time = to_wall_clock(start_time)
    end_time = to_wall_clock(end_time)
    if start_time >= end_time:
        raise ValidationError('Start time must be before end time.')

    return AvailabilityRule(
        professional_id=professional_id,
        day_of_week=day_of_week,
        specific_date=specific_date,
        start_time=start_time,
        end_time=end_time,
        active=active,
    )


class AvailabilityStore:
    """Storage of recurring and override rules; no scheduling logic lives here."""

    def __init__(self, rules: AvailabilityRepository, directory: ProfessionalDirectory):
        self._rules = rules
        self._directory = directory

    @contextmanager
    def _write(self):
        try:
            with self._rules.atomic():
                yield
        except WriteConflict as exc:
            raise Conflict('Availability changed in the meantime. Reload it and try again.') from exc

    def require_professional(self, professional_id: int) -> None:
        if self._directory.get(professional_id) is None:
            raise NotFound('Professional not found.')

    def get_rule(self, rule_id: int) -> AvailabilityRule:
        rule = self._rules.get(rule_id)
        if rule is None:
            raise NotFound('Availability rule not found.')
        return rule

    def add_rule(
        self,
        professional_id: int,
        start_time: time,
        end_time: time,
        day_of_week: int | None = None,
        specific_date: date | None = None,
        active: bool = True,
    ) -> AvailabilityRule:
        self.require_professional(professional_id)
        rule = build_rule(professional_id, start_time, end_time, day_of_week, specific_date, active)

        with self._write():
            self._rules.add(rule)

        logger.info('Added availability rule %s for professional %s', rule.id, professional_id)
        return rule

    def list_rules(
        self,
        professional_id: int,
        start_date: date | None = None,
        end_date: date | None = None,
    ) -> list[AvailabilityRule]:
        self.require_professional(professional_id)

        if start_date is None and end_date is None:
            return self._rules.list_for_professional(professional_id)

        if start_date is None or end_date is None:
            raise ValidationError('Both start_date and end_date are required for a date range.')
        if start_date > end_date:
            raise ValidationError('start_date must not be after end_date.')

        span = min((end_date - start_date).days + 1, DAYS_PER_WEEK)
        weekdays = {weekday_index(start_date + timedelta(days=offset)) for offset in range(span)}
        recurring = [
            rule
            for rule in self._rules.list_for_professional(professional_id)
            if rule.is_recurring and rule.day_of_week in weekdays
        ]
        return recurring + self._rules.overrides_between(professional_id, start_date, end_date)

    def remove_rule(self, rule_id: int) -> None:
        rule = self.get_rule(rule_id)
        professional_id = rule.professional_id

        with self._write():
            self._rules.delete(rule)

        logger.info('Removed availability rule %s for professional %s', rule_id, professional_id)

    def update_rule(
        self,
        rule_id: int,
        start_time: time | None = None,
        end_time: time | None = None,
        active: bool | None = None,
    ) -> AvailabilityRule:
        """Change the window or the active flag of an existing rule.

        Omitted fields keep their current value; the result is validated like
        a new rule before anything is written.
        """
        rule = self.get_rule(rule_id)
        updated = build_rule(
            rule.professional_id,
            start_time if start_time is not None else rule.start_time,
            end_time if end_time is not None else rule.end_time,
            day_of_week=rule.day_of_week,
            specific_date=rule.specific_date,
            active=active if active is not None else rule.active,
        )

        with self._write():
            self._rules.update(rule, updated.start_time, updated.end_time, updated.active)

        logger.info(
            'Updated availability rule %s for professional %s to %s-%s (active=%s)',
            rule_id,
            updated.professional_id,
            updated.start_time.isoformat(),
            updated.end_time.isoformat(),
            updated.active,
        )
        return rule

    def set_rule_active(self, rule_id: int, active: bool) -> AvailabilityRule:
        return self.update_rule(rule_id, active=active)

    def replace_recurring(self, professional_id: int, schedule: Iterable[WeeklyWindow]) -> list[AvailabilityRule]:
        """Swap the whole weekly schedule in one transaction.

        Every window is validated before anything is written, so a bad entry
        leaves the current schedule untouched. Override rules are kept.
        """
        self.require_professional(professional_id)
        rules = [
            build_rule(
                professional_id,
                window.start_time,
                window.end_time,
                day_of_week=window.day_of_week,
                active=window.active,
            )
            for window in schedule
        ]

        with self._write():
            created = self._rules.replace_recurring(professional_id, rules)

        logger.info('Replaced weekly schedule for professional %s with %s rules', professional_id, len(created))
        return created
