from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from lawyer_booking.auth.actor import Actor
from lawyer_booking.auth.dependencies import get_current_actor
from lawyer_booking.database import get_db
from lawyer_booking.models.notification import Notification
from lawyer_booking.routes.dependencies import DATABASE_UNAVAILABLE

router = APIRouter(tags=['notifications'])

NOTIFICATION_PAGE_SIZE = 50


class NotificationResponse(BaseModel):
    id: int
    title: str
    message: str
    type: str
    context_data: dict
    is_read: bool
    created_at: datetime | None = None

    class Config:
        from_attributes = True


class UnreadCountResponse(BaseModel):
    unread: int


@router.get('', response_model=list[NotificationResponse])
def list_notifications(
    unread_only: bool = Query(default=False),
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        query = db.query(Notification).filter(Notification.user_id == actor.id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))

        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(NOTIFICATION_PAGE_SIZE).all()
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=DATABASE_UNAVAILABLE) from exc


@router.get('/unread-count', response_model=UnreadCountResponse)
def count_unread_notifications(
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        unread = db.query(Notification).filter(
            Notification.user_id == actor.id,
            Notification.is_read.is_(False),
        ).count()
        return UnreadCountResponse(unread=unread)
    except SQLAlchemyError as exc:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=DATABASE_UNAVAILABLE) from exc


@router.put('/{notification_id}/read', response_model=NotificationResponse)
def mark_notification_as_read(
    notification_id: int,
    actor: Actor = Depends(get_current_actor),
    db: Session = Depends(get_db),
):
    try:
        notification = db.query(Notification).filter(
            Notification.id == notification_id,
            Notification.user_id == actor.id,
        ).first()

        if not notification:
            raise HTTPException(
                status_code=status.HTTP_404_NOT_FOUND,
                detail='Notification not found.',
            )

        notification.is_read = True
        db.commit()
        db.refresh(notification)

        return notification
    except SQLAlchemyError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=DATABASE_UNAVAILABLE) from exc
