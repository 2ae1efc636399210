from threading import Lock

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.orm import declarative_base, sessionmaker

from lawyer_booking.core import config


def build_engine(database_url: str):
    if database_url.startswith('sqlite'):
        return create_engine(database_url, connect_args={'check_same_thread': False})
    return create_engine(
        database_url,
        pool_pre_ping=True,
        pool_timeout=config.STORAGE_TIMEOUT_SECONDS,
    )


engine = build_engine(config.DATABASE_URL)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)

Base = declarative_base()

BLOCKING_STATUS_SQL = "('PENDING', 'SCHEDULED', 'CONFIRMED')"
APPOINTMENT_OVERLAP_CONSTRAINT = 'appointments_no_overlap_per_professional'

_schema_lock = Lock()
_availability_schema_checked = False
_appointment_schema_checked = False


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def ensure_availability_schema(bind=None) -> None:
    global _availability_schema_checked

    if _availability_schema_checked:
        return

    bind = bind or engine
    with _schema_lock:
        if _availability_schema_checked:
            return

        inspector = inspect(bind)

        if 'availability_rules' not in inspector.get_table_names():
            _availability_schema_checked = True
            return

        with bind.begin() as connection:
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_availability_rules_weekday '
                    'ON availability_rules(professional_id, day_of_week)'
                )
            )
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_availability_rules_date '
                    'ON availability_rules(professional_id, specific_date)'
                )
            )

        _availability_schema_checked = True


def ensure_appointment_schema(bind=None) -> None:
    global _appointment_schema_checked

    if _appointment_schema_checked:
        return

    bind = bind or engine
    with _schema_lock:
        if _appointment_schema_checked:
            return

        inspector = inspect(bind)

        if 'appointments' not in inspector.get_table_names():
            _appointment_schema_checked = True
            return

        with bind.begin() as connection:
            connection.execute(
                text(
                    'CREATE INDEX IF NOT EXISTS idx_appointments_professional_range '
                    'ON appointments(professional_id, start_time, end_time)'
                )
            )
            connection.execute(
                text('CREATE INDEX IF NOT EXISTS idx_appointments_client_status ON appointments(client_id, status)')
            )

            if bind.dialect.name == 'postgresql':
                # Rejects overlapping blocking appointments written by any process.
                connection.execute(text('CREATE EXTENSION IF NOT EXISTS btree_gist'))
                exists = connection.execute(
                    text('SELECT 1 FROM pg_constraint WHERE conname = :name'),
                    {'name': APPOINTMENT_OVERLAP_CONSTRAINT},
                ).first()
                if exists is None:
                    connection.execute(
                        text(
                            f'ALTER TABLE appointments ADD CONSTRAINT {APPOINTMENT_OVERLAP_CONSTRAINT} '
                            "EXCLUDE USING gist (professional_id WITH =, tsrange(start_time, end_time, '[)') WITH &&) "
                            f'WHERE (status IN {BLOCKING_STATUS_SQL})'
                        )
                    )

        _appointment_schema_checked = True
