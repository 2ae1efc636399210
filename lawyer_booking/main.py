import logging
from concurrent.futures import ThreadPoolExecutor

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from lawyer_booking.core import config
from lawyer_booking.database import Base, SessionLocal, engine, ensure_appointment_schema, ensure_availability_schema
from lawyer_booking.models import appointment, availability, notification, professional, user  # noqa: F401
from lawyer_booking.routes import appointment_routes, availability_routes, notification_routes
from lawyer_booking.services.booking_engine import ProfessionalLocks
from lawyer_booking.services.notifications import ConnectionRegistry, NotificationDispatcher

logging.basicConfig(
    level=config.LOG_LEVEL,
    format='%(asctime)s %(levelname)s %(name)s: %(message)s',
)

logger = logging.getLogger(__name__)

app = FastAPI(title='Lawyer Booking API')

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=['*'],
    allow_headers=['*'],
)

notification_executor = ThreadPoolExecutor(
    max_workers=config.NOTIFICATION_WORKERS,
    thread_name_prefix='notifications',
)
app.state.connection_registry = ConnectionRegistry()
app.state.notification_dispatcher = NotificationDispatcher(
    SessionLocal,
    app.state.connection_registry,
    executor=notification_executor,
)
app.state.professional_locks = ProfessionalLocks(config.STORAGE_TIMEOUT_SECONDS)


@app.on_event('startup')
def initialize_database() -> None:
    config.validate_runtime_config()
    try:
        Base.metadata.create_all(bind=engine)
        ensure_availability_schema()
        ensure_appointment_schema()
    except SQLAlchemyError:
        logger.exception('Database initialization failed. Check DATABASE_URL and Postgres credentials.')


@app.on_event('shutdown')
def stop_notification_workers() -> None:
    notification_executor.shutdown(wait=True)


@app.get('/')
def root():
    return {'status': 'Lawyer Booking API Running'}


app.include_router(availability_routes.router, prefix='/availability')
app.include_router(appointment_routes.router, prefix='/appointments')
app.include_router(notification_routes.router, prefix='/notifications')
