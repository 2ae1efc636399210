"""Notification sink used by the booking engine, plus live push to connected users."""

import enum
import logging
from concurrent.futures import Executor, Future
from threading import Lock
from typing import Any, Callable, Protocol

from sqlalchemy.orm import Session

from lawyer_booking.models.notification import Notification

logger = logging.getLogger(__name__)

Connection = Callable[[dict], None]


class NotificationType(str, enum.Enum):
    APPOINTMENT_REQUEST = 'APPOINTMENT_REQUEST'
    APPOINTMENT_CONFIRMED = 'APPOINTMENT_CONFIRMED'
    APPOINTMENT_CANCELLED = 'APPOINTMENT_CANCELLED'
    APPOINTMENT_UPDATED = 'APPOINTMENT_UPDATED'


class NotificationSink(Protocol):
    def notify(
        self,
        user_id: int,
        title: str,
        message: str,
        type: str,
        context_data: dict[str, Any] | None = None,
    ) -> None: ...


def serialize_notification(notification: Notification) -> dict:
    return {
        'id': notification.id,
        'title': notification.title,
        'message': notification.message,
        'type': notification.type,
        'data': notification.context_data or {},
        'isRead': bool(notification.is_read),
        'createdAt': notification.created_at.isoformat() if notification.created_at else None,
    }


class ConnectionRegistry:
    """Live connections per user.

    One registry is built by the application and handed to the dispatcher;
    there is no module-level registry.
    """

    def __init__(self):
        self._lock = Lock()
        self._connections: dict[int, list[Connection]] = {}

    def register(self, user_id: int, connection: Connection) -> None:
        with self._lock:
            self._connections.setdefault(user_id, []).append(connection)

    def unregister(self, user_id: int, connection: Connection) -> None:
        with self._lock:
            connections = self._connections.get(user_id, [])
            if connection in connections:
                connections.remove(connection)
            if not connections:
                self._connections.pop(user_id, None)

    def connection_count(self, user_id: int) -> int:
        with self._lock:
            return len(self._connections.get(user_id, []))

    def push(self, user_id: int, payload: dict) -> int:
        with self._lock:
            connections = list(self._connections.get(user_id, []))

        delivered = 0
        for connection in connections:
            try:
                connection(payload)
            except Exception:
                logger.exception('Dropping broken connection for user %s', user_id)
                self.unregister(user_id, connection)
            else:
                delivered += 1
        return delivered


class NotificationDispatcher:
    """Persists notifications in their own session and pushes them live.

    With an executor the work happens off the caller's thread and failures
    are only logged.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        registry: ConnectionRegistry,
        executor: Executor | None = None,
    ):
        self._session_factory = session_factory
        self._registry = registry
        self._executor = executor

    def notify(
        self,
        user_id: int,
        title: str,
        message: str,
        type: str,
        context_data: dict[str, Any] | None = None,
    ) -> None:
        if self._executor is None:
            self._deliver(user_id, title, message, type, context_data)
            return

        future = self._executor.submit(self._deliver, user_id, title, message, type, context_data)
        future.add_done_callback(self._log_failure)

    def _deliver(
        self,
        user_id: int,
        title: str,
        message: str,
        type: str,
        context_data: dict[str, Any] | None,
    ) -> dict:
        db = self._session_factory()
        try:
            notification = Notification(
                user_id=user_id,
                title=title,
                message=message,
                type=str(type.value if isinstance(type, NotificationType) else type),
                context_data=context_data or {},
                is_read=False,
            )
            db.add(notification)
            db.commit()
            db.refresh(notification)
            payload = serialize_notification(notification)
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

        self._registry.push(user_id, payload)
        return payload

    @staticmethod
    def _log_failure(future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error('Notification delivery failed', exc_info=exc)
