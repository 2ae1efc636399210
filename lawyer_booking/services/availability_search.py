import logging
from datetime import date, datetime, time, timedelta
from typing import Any, Mapping

from pydantic import BaseModel, ConfigDict, field_validator
from pydantic import ValidationError as PydanticValidationError

from lawyer_booking.core import config
from lawyer_booking.core.clock import to_wall_clock
from lawyer_booking.core.errors import ValidationError
from lawyer_booking.models.professional import Professional
from lawyer_booking.repositories.base import ProfessionalDirectory
from lawyer_booking.services.availability_resolver import AvailabilityResolver
from lawyer_booking.services.conflict_checker import ConflictChecker

logger = logging.getLogger(__name__)


class SearchFilters(BaseModel):
    """The recognised search filters; anything else is rejected."""

    model_config = ConfigDict(extra='forbid')

    date: date
    time: time
    practice_area: str | None = None

    @field_validator('time')
    @classmethod
    def trim_time(cls, value: time) -> time:
        return to_wall_clock(value)

    @field_validator('practice_area')
    @classmethod
    def normalize_practice_area(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip() or None


def parse_search_filters(raw: Mapping[str, Any]) -> SearchFilters:
    try:
        return SearchFilters.model_validate(dict(raw))
    except PydanticValidationError as exc:
        problems = '; '.join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        raise ValidationError(f'Invalid search filters: {problems}') from exc


class AvailabilitySearch:
    def __init__(
        self,
        directory: ProfessionalDirectory,
        resolver: AvailabilityResolver,
        conflicts: ConflictChecker,
        slot_minutes: int = config.DEFAULT_SLOT_DURATION_MINUTES,
    ):
        self._directory = directory
        self._resolver = resolver
        self._conflicts = conflicts
        self._slot_minutes = slot_minutes

    def find_available_professionals(self, filters: SearchFilters | Mapping[str, Any]) -> list[Professional]:
        if not isinstance(filters, SearchFilters):
            filters = parse_search_filters(filters)

        slot_start = datetime.combine(filters.date, filters.time)
        slot_end = slot_start + timedelta(minutes=self._slot_minutes)

        available = [
            candidate
            for candidate in self._directory.list_bookable(filters.practice_area)
            if self._resolver.is_open(candidate.id, filters.date, filters.time)
            and not self._conflicts.has_conflict(candidate.id, slot_start, slot_end)
        ]
        available.sort(key=lambda professional: ((professional.full_name or '').lower(), professional.id))

        logger.debug(
            'Availability search on %s at %s (practice area %s) matched %s professionals',
            filters.date.isoformat(),
            filters.time.isoformat(),
            filters.practice_area,
            len(available),
        )
        return available
