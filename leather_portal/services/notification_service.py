from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy import delete, or_, select, update
from sqlalchemy.orm import Session

from leather_portal.errors import NotFoundError, ValidationFailed
from leather_portal.models import Notification, NotificationType, utcnow
from leather_portal.services.identifiers import is_object_id, require_object_id
from leather_portal.services.listing import Page, contains, paginate, resolve_sort

logger = logging.getLogger(__name__)

NOTIFICATION_SORT_FIELDS = {
    'createdAt': Notification.created_at,
    'updatedAt': Notification.updated_at,
    'read': Notification.read,
    'type': Notification.type,
    'title': Notification.title,
}


def create_notification(
    db: Session,
    *,
    title: str,
    message: str,
    type: NotificationType = NotificationType.INFO,
    link: str | None = None,
    related_id: str | None = None,
) -> Notification:
    if not title or not message:
        raise ValidationFailed('Notification title and message are required')
    if related_id is not None and not is_object_id(related_id):
        logger.warning('Dropping invalid related id on notification %r: %s', title, related_id)
        related_id = None

    notification = Notification(
        title=title,
        message=message,
        type=NotificationType(type),
        link=link,
        related_id=related_id.lower() if related_id else None,
    )
    db.add(notification)
    db.flush()
    logger.info('Notification created: %s (%s)', notification.id, notification.type.value)
    return notification


def list_notifications(
    db: Session,
    *,
    read: bool | None = None,
    type: str | None = None,
    search: str | None = None,
    page: int = 1,
    limit: int = 10,
    sort_by: str | None = None,
    order: str | None = None,
) -> Page:
    stmt = select(Notification)
    if read is not None:
        stmt = stmt.where(Notification.read.is_(read))
    if type and type != 'all':
        try:
            stmt = stmt.where(Notification.type == NotificationType(type))
        except ValueError as exc:
            raise ValidationFailed.for_field('type', f'Unknown notification type: {type}') from exc
    if search:
        stmt = stmt.where(or_(contains(Notification.title, search), contains(Notification.message, search)))

    order_by = resolve_sort(sort_by, order, NOTIFICATION_SORT_FIELDS, entity='notifications')
    return paginate(db, stmt, page=page, limit=limit, order_by=order_by)


def get_notification(db: Session, *, notification_id: str) -> Notification:
    notification = db.get(Notification, require_object_id(notification_id))
    if notification is None:
        raise NotFoundError('Notification not found')
    return notification


def set_notification_read(db: Session, *, notification_id: str, read: bool = True) -> Notification:
    notification = get_notification(db, notification_id=notification_id)
    notification.read = read
    notification.updated_at = utcnow()
    db.flush()
    return notification


def mark_all_read(db: Session) -> int:
    result = db.execute(
        update(Notification)
        .where(Notification.read.is_(False))
        .values(read=True, updated_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    logger.info('Marked %s notifications as read', result.rowcount)
    return result.rowcount


def delete_notification(db: Session, *, notification_id: str) -> None:
    notification = get_notification(db, notification_id=notification_id)
    db.delete(notification)
    db.flush()
    logger.info('Notification deleted: %s', notification_id)


def delete_old_notifications(db: Session, *, days: int = 7, now: datetime | None = None) -> int:
    """Delete notifications created strictly before ``now - days``.

    Rows exactly ``days`` old survive. Running twice deletes nothing the second time.
    """
    if days < 0:
        raise ValidationFailed.for_field('days', 'Retention days must not be negative')
    cutoff = (now or utcnow()) - timedelta(days=days)
    result = db.execute(
        delete(Notification).where(Notification.created_at < cutoff).execution_options(synchronize_session=False)
    )
    logger.info('Deleted %s notifications older than %s days', result.rowcount, days)
    return result.rowcount
