from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from leather_portal.config import settings
from leather_portal.db import get_db
from leather_portal.errors import UnauthorizedError
from leather_portal.serializers import envelope
from leather_portal.services.notification_service import delete_old_notifications

logger = logging.getLogger(__name__)

router = APIRouter(prefix='/cron', tags=['cron'])


def require_cron_secret(request: Request) -> None:
    secret = settings.notification_cleanup_cron_secret
    # Header values arrive latin-1 decoded; compare raw bytes.
    supplied = request.headers.get('authorization', '').encode('latin-1')
    if not secret or not hmac.compare_digest(supplied, f'Bearer {secret}'.encode('utf-8')):
        logger.warning('Rejected cron call to %s', request.url.path)
        raise UnauthorizedError('Unauthorized')


@router.get('/cleanup-notifications')
def cleanup_notifications(_: None = Depends(require_cron_secret), db: Session = Depends(get_db)):
    days = settings.notification_retention_days
    deleted = delete_old_notifications(db, days=days)
    db.commit()
    return envelope(
        f'Deleted {deleted} notifications older than {days} days.',
        {'deleted_count': deleted, 'retention_days': days},
    )
