from datetime import date, time
from typing import Iterable

from lawyer_booking.models.availability import AvailabilityRule
from lawyer_booking.repositories.base import SqlAlchemyRepository


class SqlAlchemyAvailabilityRepository(SqlAlchemyRepository):
    def get(self, rule_id: int) -> AvailabilityRule | None:
        return self.db.query(AvailabilityRule).filter(AvailabilityRule.id == rule_id).first()

    def add(self, rule: AvailabilityRule) -> AvailabilityRule:
        self.db.add(rule)
        self.db.flush()
        return rule

    def delete(self, rule: AvailabilityRule) -> None:
        self.db.delete(rule)
        self.db.flush()

    def update(self, rule: AvailabilityRule, start_time: time, end_time: time, active: bool) -> AvailabilityRule:
        rule.start_time = start_time
        rule.end_time = end_time
        rule.active = active
        self.db.flush()
        return rule

    def list_for_professional(self, professional_id: int) -> list[AvailabilityRule]:
        return self.db.query(AvailabilityRule).filter(
            AvailabilityRule.professional_id == professional_id,
        ).order_by(
            AvailabilityRule.specific_date.asc(),
            AvailabilityRule.day_of_week.asc(),
            AvailabilityRule.start_time.asc(),
            AvailabilityRule.id.asc(),
        ).all()

    def overrides_between(self, professional_id: int, start_date: date, end_date: date) -> list[AvailabilityRule]:
        return self.db.query(AvailabilityRule).filter(
            AvailabilityRule.professional_id == professional_id,
            AvailabilityRule.specific_date.is_not(None),
            AvailabilityRule.specific_date >= start_date,
            AvailabilityRule.specific_date <= end_date,
        ).order_by(AvailabilityRule.specific_date.asc(), AvailabilityRule.start_time.asc()).all()

    def overrides_on(self, professional_id: int, day: date) -> list[AvailabilityRule]:
        return self.db.query(AvailabilityRule).filter(
            AvailabilityRule.professional_id == professional_id,
            AvailabilityRule.specific_date == day,
        ).order_by(AvailabilityRule.start_time.asc()).all()

    def recurring_on(self, professional_id: int, day_of_week: int) -> list[AvailabilityRule]:
        return self.db.query(AvailabilityRule).filter(
            AvailabilityRule.professional_id == professional_id,
            AvailabilityRule.specific_date.is_(None),
            AvailabilityRule.day_of_week == day_of_week,
            AvailabilityRule.active.is_(True),
        ).order_by(AvailabilityRule.start_time.asc()).all()

    def replace_recurring(self, professional_id: int, rules: Iterable[AvailabilityRule]) -> list[AvailabilityRule]:
        self.db.query(AvailabilityRule).filter(
            AvailabilityRule.professional_id == professional_id,
            AvailabilityRule.specific_date.is_(None),
        ).delete(synchronize_session=False)

        created = list(rules)
        self.db.add_all(created)
        self.db.flush()
        return created
