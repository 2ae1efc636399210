from lawyer_booking.models.professional import Professional
from lawyer_booking.repositories.base import SqlAlchemyRepository


class SqlAlchemyProfessionalDirectory(SqlAlchemyRepository):
    def get(self, professional_id: int) -> Professional | None:
        return self.db.query(Professional).filter(Professional.id == professional_id).first()

    def list_bookable(self, practice_area: str | None = None) -> list[Professional]:
        professionals = self.db.query(Professional).filter(
            Professional.verified.is_(True),
            Professional.accepting_bookings.is_(True),
        ).order_by(Professional.full_name.asc(), Professional.id.asc()).all()

        # Tag membership on a JSON column differs per dialect; filter in Python.
        if practice_area:
            professionals = [professional for professional in professionals if professional.offers(practice_area)]

        return professionals
