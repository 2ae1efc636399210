from datetime import datetime
from typing import Iterable

from sqlalchemy import update

from lawyer_booking.models.appointment import Appointment, AppointmentStatus
from lawyer_booking.models.professional import Professional
from lawyer_booking.repositories.base import SqlAlchemyRepository


class SqlAlchemyAppointmentRepository(SqlAlchemyRepository):
    def lock_professional(self, professional_id: int) -> None:
        # SELECT ... FOR UPDATE; SQLite has no row locks and skips the clause.
        self.db.query(Professional.id).filter(Professional.id == professional_id).with_for_update().first()

    def get(self, appointment_id: int) -> Appointment | None:
        return self.db.query(Appointment).filter(Appointment.id == appointment_id).first()

    def add(self, appointment: Appointment) -> Appointment:
        self.db.add(appointment)
        self.db.flush()
        return appointment

    def find_overlapping(
        self,
        professional_id: int,
        start_time: datetime,
        end_time: datetime,
        statuses: Iterable[AppointmentStatus],
        exclude_appointment_id: int | None = None,
    ) -> list[Appointment]:
        query = self.db.query(Appointment).filter(
            Appointment.professional_id == professional_id,
            Appointment.status.in_([status.value for status in statuses]),
            Appointment.start_time < end_time,
            Appointment.end_time > start_time,
        )
        if exclude_appointment_id is not None:
            query = query.filter(Appointment.id != exclude_appointment_id)
        return query.order_by(Appointment.start_time.asc(), Appointment.id.asc()).all()

    def update_status(
        self,
        appointment_id: int,
        expected_status: AppointmentStatus,
        new_status: AppointmentStatus,
        notes: str | None = None,
    ) -> Appointment | None:
        values = {'status': new_status.value, 'updated_at': datetime.now()}
        if notes is not None:
            values['notes'] = notes

        result = self.db.execute(
            update(Appointment)
            .where(Appointment.id == appointment_id, Appointment.status == expected_status.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            return None

        return self.db.get(Appointment, appointment_id, populate_existing=True)

    def list_for_professional(
        self,
        professional_id: int,
        status: AppointmentStatus | None = None,
        start_time: datetime | None = None,
        end_time: datetime | None = None,
    ) -> list[Appointment]:
        query = self.db.query(Appointment).filter(Appointment.professional_id == professional_id)
        if status is not None:
            query = query.filter(Appointment.status == status.value)
        if start_time is not None:
            query = query.filter(Appointment.start_time >= start_time)
        if end_time is not None:
            query = query.filter(Appointment.start_time < end_time)
        return query.order_by(Appointment.start_time.asc(), Appointment.id.asc()).all()

    def list_for_client(self, client_id: int, status: AppointmentStatus | None = None) -> list[Appointment]:
        query = self.db.query(Appointment).filter(Appointment.client_id == client_id)
        if status is not None:
            query = query.filter(Appointment.status == status.value)
        return query.order_by(Appointment.start_time.asc(), Appointment.id.asc()).all()

    def list_pending(self, professional_id: int) -> list[Appointment]:
        return self.db.query(Appointment).filter(
            Appointment.professional_id == professional_id,
            Appointment.status == AppointmentStatus.PENDING.value,
        ).order_by(Appointment.created_at.desc(), Appointment.id.desc()).all()
