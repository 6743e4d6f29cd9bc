from __future__ import annotations

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from leather_portal.db import get_db
from leather_portal.forms import read_body
from leather_portal.schemas import NotificationUpdate
from leather_portal.serializers import envelope, serialize_notification
from leather_portal.services.notification_service import (
    delete_notification,
    list_notifications,
    mark_all_read,
    set_notification_read,
)

router = APIRouter(prefix='/notifications', tags=['notifications'])


@router.get('')
def list_all(
    read: bool | None = None,
    type: str | None = None,
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1),
    sort_by: str | None = Query(default=None, alias='sortBy'),
    order: str | None = None,
    db: Session = Depends(get_db),
):
    result = list_notifications(
        db,
        read=read,
        type=type,
        search=search,
        page=page,
        limit=limit,
        sort_by=sort_by,
        order=order,
    )
    return envelope(
        'Notifications retrieved successfully.',
        [serialize_notification(notification) for notification in result.rows],
        pagination=result.pagination(),
    )


@router.patch('')
def mark_all(db: Session = Depends(get_db)):
    count = mark_all_read(db)
    db.commit()
    return envelope('All notifications marked as read.', {'updated': count})


@router.patch('/{notification_id}')
async def mark_one(notification_id: str, request: Request, db: Session = Depends(get_db)):
    body = await read_body(request) if await request.body() else {}
    payload = NotificationUpdate.model_validate(body)
    notification = set_notification_read(db, notification_id=notification_id, read=payload.read)
    db.commit()
    state = 'read' if notification.read else 'unread'
    return envelope(f'Notification marked as {state}.', serialize_notification(notification))


@router.delete('/{notification_id}')
def delete(notification_id: str, db: Session = Depends(get_db)):
    delete_notification(db, notification_id=notification_id)
    db.commit()
    return envelope('Notification deleted successfully.')
