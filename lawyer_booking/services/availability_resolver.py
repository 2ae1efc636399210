from datetime import date, datetime, time

from lawyer_booking.core.clock import to_wall_clock, weekday_index
from lawyer_booking.models.availability import AvailabilityRule
from lawyer_booking.repositories.base import AvailabilityRepository


class AvailabilityResolver:
    """Answers whether a professional is open, applying override precedence.

    Any override rule dated on a day replaces the weekly schedule for that
    day, including inactive ones: a day whose overrides are all inactive is
    closed.
    """

    def __init__(self, rules: AvailabilityRepository):
        self._rules = rules

    def candidate_rules(self, professional_id: int, day: date) -> list[AvailabilityRule]:
        overrides = self._rules.overrides_on(professional_id, day)
        if overrides:
            return [rule for rule in overrides if rule.active]

        return self._rules.recurring_on(professional_id, weekday_index(day))

    def is_open(self, professional_id: int, day: date, at: time) -> bool:
        at = to_wall_clock(at)
        return any(rule.contains(at) for rule in self.candidate_rules(professional_id, day))

    def covers(self, professional_id: int, start_time: datetime, end_time: datetime) -> bool:
        """True when [start_time, end_time) sits inside a single open window."""
        if start_time >= end_time or start_time.date() != end_time.date():
            return False

        return any(
            rule.start_time <= start_time.time() and end_time.time() <= rule.end_time
            for rule in self.candidate_rules(professional_id, start_time.date())
        )
