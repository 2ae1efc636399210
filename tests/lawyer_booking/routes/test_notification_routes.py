from datetime import datetime

import pytest
from fastapi import HTTPException

from lawyer_booking.auth.actor import Actor, ActorRole
from lawyer_booking.models.notification import Notification
from lawyer_booking.routes.notification_routes import (
    count_unread_notifications,
    list_notifications,
    mark_notification_as_read,
)

CLIENT = Actor(id=100, role=ActorRole.CLIENT)
OTHER_CLIENT = Actor(id=101, role=ActorRole.CLIENT)


@pytest.fixture
def notifications_db(db_session):
    db_session.add_all([
        Notification(
            user_id=100,
            title='Appointment Update',
            message='Your appointment has been confirmed',
            type='APPOINTMENT_CONFIRMED',
            context_data={'appointmentId': 1},
            is_read=True,
            created_at=datetime(2030, 1, 7, 9, 0),
        ),
        Notification(
            user_id=100,
            title='Appointment Update',
            message='Your appointment has been cancelled',
            type='APPOINTMENT_CANCELLED',
            context_data={'appointmentId': 2},
            created_at=datetime(2030, 1, 7, 10, 0),
        ),
        Notification(
            user_id=101,
            title='Appointment Update',
            message='Your appointment status has been updated',
            type='APPOINTMENT_UPDATED',
            created_at=datetime(2030, 1, 7, 11, 0),
        ),
    ])
    db_session.commit()
    return db_session


def test_list_notifications_newest_first(notifications_db) -> None:
    notifications = list_notifications(unread_only=False, actor=CLIENT, db=notifications_db)

    assert [notification.type for notification in notifications] == ['APPOINTMENT_CANCELLED', 'APPOINTMENT_CONFIRMED']


def test_list_notifications_unread_only(notifications_db) -> None:
    notifications = list_notifications(unread_only=True, actor=CLIENT, db=notifications_db)

    assert [notification.type for notification in notifications] == ['APPOINTMENT_CANCELLED']


def test_mark_notification_as_read(notifications_db) -> None:
    unread = list_notifications(unread_only=True, actor=CLIENT, db=notifications_db)[0]

    updated = mark_notification_as_read(notification_id=unread.id, actor=CLIENT, db=notifications_db)

    assert updated.is_read is True
    assert count_unread_notifications(actor=CLIENT, db=notifications_db).unread == 0


def test_mark_notification_as_read_rejects_other_users(notifications_db) -> None:
    unread = list_notifications(unread_only=True, actor=CLIENT, db=notifications_db)[0]

    with pytest.raises(HTTPException) as exception_info:
        mark_notification_as_read(notification_id=unread.id, actor=OTHER_CLIENT, db=notifications_db)

    assert exception_info.value.status_code == 404
    assert exception_info.value.detail == 'Notification not found.'


def test_count_unread_notifications_is_per_user(notifications_db) -> None:
    assert count_unread_notifications(actor=CLIENT, db=notifications_db).unread == 1
    assert count_unread_notifications(actor=OTHER_CLIENT, db=notifications_db).unread == 1
    assert count_unread_notifications(actor=Actor(id=102, role=ActorRole.CLIENT), db=notifications_db).unread == 0
