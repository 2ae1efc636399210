from datetime import date, time

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import BaseModel, field_validator

from lawyer_booking.auth.actor import Actor
from lawyer_booking.auth.dependencies import get_current_actor
from lawyer_booking.core.clock import to_wall_clock
from lawyer_booking.routes.dependencies import (
    ensure_professional_owner,
    get_availability_resolver,
    get_availability_search,
    get_availability_store,
    service_errors,
)
from lawyer_booking.services.availability_resolver import AvailabilityResolver
from lawyer_booking.services.availability_search import AvailabilitySearch
from lawyer_booking.services.availability_store import AvailabilityStore, WeeklyWindow

router = APIRouter(tags=['availability'])


class CreateRuleRequest(BaseModel):
    day_of_week: int | None = None
    specific_date: date | None = None
    start_time: time
    end_time: time
    active: bool = True


class WeeklyWindowRequest(BaseModel):
    day_of_week: int
    start_time: time
    end_time: time
    active: bool = True


class ReplaceRecurringRequest(BaseModel):
    schedule: list[WeeklyWindowRequest]

    @field_validator('schedule')
    @classmethod
    def validate_schedule(cls, value: list[WeeklyWindowRequest]) -> list[WeeklyWindowRequest]:
        if not value:
            raise ValueError('Schedule must contain at least one window.')
        return value


class UpdateRuleRequest(BaseModel):
    start_time: time | None = None
    end_time: time | None = None
    active: bool | None = None


class AvailabilityRuleResponse(BaseModel):
    id: int
    professional_id: int
    day_of_week: int | None = None
    specific_date: date | None = None
    start_time: time
    end_time: time
    active: bool

    class Config:
        from_attributes = True


class OpenStatusResponse(BaseModel):
    professional_id: int
    date: date
    time: time
    is_open: bool


class AvailableProfessionalResponse(BaseModel):
    id: int
    full_name: str
    practice_areas: list[str]

    class Config:
        from_attributes = True


@router.get('/professionals/available', response_model=list[AvailableProfessionalResponse])
def find_available_professionals(
    request: Request,
    search: AvailabilitySearch = Depends(get_availability_search),
):
    # Validated as a whole so that unknown query parameters are rejected.
    with service_errors():
        return search.find_available_professionals(request.query_params)


@router.post(
    '/professionals/{professional_id}/rules',
    response_model=AvailabilityRuleResponse,
    status_code=status.HTTP_201_CREATED,
)
def add_availability_rule(
    professional_id: int,
    data: CreateRuleRequest,
    actor: Actor = Depends(get_current_actor),
    store: AvailabilityStore = Depends(get_availability_store),
):
    ensure_professional_owner(actor, professional_id)

    with service_errors():
        return store.add_rule(
            professional_id,
            data.start_time,
            data.end_time,
            day_of_week=data.day_of_week,
            specific_date=data.specific_date,
            active=data.active,
        )


@router.get('/professionals/{professional_id}/rules', response_model=list[AvailabilityRuleResponse])
def list_availability_rules(
    professional_id: int,
    start_date: date | None = Query(default=None),
    end_date: date | None = Query(default=None),
    store: AvailabilityStore = Depends(get_availability_store),
):
    with service_errors():
        return store.list_rules(professional_id, start_date=start_date, end_date=end_date)


@router.put('/professionals/{professional_id}/rules/recurring', response_model=list[AvailabilityRuleResponse])
def replace_recurring_rules(
    professional_id: int,
    data: ReplaceRecurringRequest,
    actor: Actor = Depends(get_current_actor),
    store: AvailabilityStore = Depends(get_availability_store),
):
    ensure_professional_owner(actor, professional_id)

    with service_errors():
        return store.replace_recurring(
            professional_id,
            [
                WeeklyWindow(window.day_of_week, window.start_time, window.end_time, window.active)
                for window in data.schedule
            ],
        )


@router.get('/professionals/{professional_id}/open', response_model=OpenStatusResponse)
def check_professional_open(
    professional_id: int,
    date: date = Query(...),
    time: time = Query(...),
    store: AvailabilityStore = Depends(get_availability_store),
    resolver: AvailabilityResolver = Depends(get_availability_resolver),
):
    time = to_wall_clock(time)
    with service_errors():
        store.require_professional(professional_id)
        is_open = resolver.is_open(professional_id, date, time)

    return OpenStatusResponse(professional_id=professional_id, date=date, time=time, is_open=is_open)


@router.patch('/rules/{rule_id}', response_model=AvailabilityRuleResponse)
def update_availability_rule(
    rule_id: int,
    data: UpdateRuleRequest,
    actor: Actor = Depends(get_current_actor),
    store: AvailabilityStore = Depends(get_availability_store),
):
    with service_errors():
        rule = store.get_rule(rule_id)
        ensure_professional_owner(actor, rule.professional_id)
        return store.update_rule(
            rule_id,
            start_time=data.start_time,
            end_time=data.end_time,
            active=data.active,
        )


@router.delete('/rules/{rule_id}', status_code=status.HTTP_204_NO_CONTENT)
def remove_availability_rule(
    rule_id: int,
    actor: Actor = Depends(get_current_actor),
    store: AvailabilityStore = Depends(get_availability_store),
):
    with service_errors():
        rule = store.get_rule(rule_id)
        ensure_professional_owner(actor, rule.professional_id)
        store.remove_rule(rule_id)
