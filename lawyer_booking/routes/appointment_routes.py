from datetime import date, datetime

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, field_validator

from lawyer_booking.auth.actor import Actor, ActorRole
from lawyer_booking.auth.dependencies import get_current_actor, require_role
from lawyer_booking.core import config
from lawyer_booking.core.clock import to_local_naive
from lawyer_booking.models.appointment import Appointment, AppointmentStatus, MeetingType
from lawyer_booking.routes.dependencies import get_booking_engine, service_errors
from lawyer_booking.services.booking_engine import AppointmentDetails, BookingEngine

router = APIRouter(tags=['appointments'])


class CreateAppointmentRequest(AppointmentDetails):
    professional_id: int
    start_time: datetime
    end_time: datetime

    @field_validator('start_time', 'end_time')
    @classmethod
    def normalize_timestamp(cls, value: datetime) -> datetime:
        return to_local_naive(value)

    def to_details(self) -> AppointmentDetails:
        return AppointmentDetails(
            title=self.title,
            description=self.description,
            practice_area=self.practice_area,
            meeting_type=self.meeting_type,
        )


class UpdateStatusRequest(BaseModel):
    status: AppointmentStatus
    notes: str | None = None

    @field_validator('notes')
    @classmethod
    def validate_notes(cls, value: str | None) -> str | None:
        if value is not None and len(value.strip()) > config.MAX_APPOINTMENT_NOTES_LENGTH:
            raise ValueError(f'Notes must be {config.MAX_APPOINTMENT_NOTES_LENGTH} characters or fewer.')
        return value


class CancelAppointmentRequest(BaseModel):
    reason: str | None = None


class AppointmentResponse(BaseModel):
    id: int
    client_id: int
    professional_id: int
    start_time: datetime
    end_time: datetime
    duration_minutes: int
    status: AppointmentStatus
    title: str | None = None
    description: str | None = None
    practice_area: str | None = None
    meeting_type: MeetingType
    notes: str | None = None


def to_appointment_response(appointment: Appointment) -> AppointmentResponse:
    delta = appointment.end_time - appointment.start_time
    return AppointmentResponse(
        id=appointment.id,
        client_id=appointment.client_id,
        professional_id=appointment.professional_id,
        start_time=appointment.start_time,
        end_time=appointment.end_time,
        duration_minutes=int(delta.total_seconds() // 60),
        status=appointment.status,
        title=appointment.title,
        description=appointment.description,
        practice_area=appointment.practice_area,
        meeting_type=appointment.meeting_type or MeetingType.VIRTUAL,
        notes=appointment.notes,
    )


@router.post('', response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def create_appointment(
    data: CreateAppointmentRequest,
    actor: Actor = Depends(require_role(ActorRole.CLIENT)),
    engine: BookingEngine = Depends(get_booking_engine),
):
    with service_errors():
        appointment = engine.create_appointment(
            actor.id,
            data.professional_id,
            data.start_time,
            data.end_time,
            data.to_details(),
        )
        return to_appointment_response(appointment)


@router.get('/professional', response_model=list[AppointmentResponse])
def list_professional_appointments(
    status: AppointmentStatus | None = Query(default=None),
    date: date | None = Query(default=None),
    actor: Actor = Depends(require_role(ActorRole.PROFESSIONAL)),
    engine: BookingEngine = Depends(get_booking_engine),
):
    with service_errors():
        appointments = engine.list_professional_appointments(actor.id, status=status, on_date=date)
        return [to_appointment_response(appointment) for appointment in appointments]


@router.get('/professional/pending', response_model=list[AppointmentResponse])
def list_pending_requests(
    actor: Actor = Depends(require_role(ActorRole.PROFESSIONAL)),
    engine: BookingEngine = Depends(get_booking_engine),
):
    with service_errors():
        return [to_appointment_response(appointment) for appointment in engine.list_pending_requests(actor.id)]


@router.get('/client', response_model=list[AppointmentResponse])
def list_client_appointments(
    status: AppointmentStatus | None = Query(default=None),
    actor: Actor = Depends(require_role(ActorRole.CLIENT)),
    engine: BookingEngine = Depends(get_booking_engine),
):
    with service_errors():
        appointments = engine.list_client_appointments(actor.id, status=status)
        return [to_appointment_response(appointment) for appointment in appointments]


@router.get('/{appointment_id}', response_model=AppointmentResponse)
def get_appointment(
    appointment_id: int,
    actor: Actor = Depends(get_current_actor),
    engine: BookingEngine = Depends(get_booking_engine),
):
    with service_errors():
        return to_appointment_response(engine.get_appointment(appointment_id, actor.id, actor.role))


@router.patch('/{appointment_id}/status', response_model=AppointmentResponse)
def update_appointment_status(
    appointment_id: int,
    data: UpdateStatusRequest,
    actor: Actor = Depends(require_role(ActorRole.PROFESSIONAL)),
    engine: BookingEngine = Depends(get_booking_engine),
):
    with service_errors():
        appointment = engine.transition_status(appointment_id, actor.id, actor.role, data.status, data.notes)
        return to_appointment_response(appointment)


@router.patch('/{appointment_id}/cancel', response_model=AppointmentResponse)
def cancel_my_appointment(
    appointment_id: int,
    data: CancelAppointmentRequest | None = None,
    actor: Actor = Depends(require_role(ActorRole.CLIENT)),
    engine: BookingEngine = Depends(get_booking_engine),
):
    reason = data.reason if data else None

    with service_errors():
        return to_appointment_response(engine.cancel_appointment(appointment_id, actor.id, reason))
