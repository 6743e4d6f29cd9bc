from __future__ import annotations

import unittest
from datetime import timedelta

from sqlalchemy import func, select

from leather_portal.errors import NotFoundError, ValidationFailed
from leather_portal.models import Notification, NotificationType, utcnow
from leather_portal.services.notification_service import (
    create_notification,
    delete_notification,
    delete_old_notifications,
    list_notifications,
    mark_all_read,
    set_notification_read,
)
from support import make_session_factory


class NotificationServiceTests(unittest.TestCase):
    def setUp(self) -> None:
        self.session_factory = make_session_factory()
        self.db = self.session_factory()

    def tearDown(self) -> None:
        self.db.close()

    def _count(self) -> int:
        return self.db.scalar(select(func.count()).select_from(Notification))

    def test_retention_deletes_only_rows_strictly_older_than_cutoff(self) -> None:
        now = utcnow()
        for age in (0, 6, 7, 8, 30):
            self.db.add(Notification(title=f'{age} days', message='old', created_at=now - timedelta(days=age)))
        self.db.commit()

        deleted = delete_old_notifications(self.db, days=7, now=now)
        self.db.commit()

        self.assertEqual(deleted, 2)
        remaining = sorted(row.title for row in self.db.execute(select(Notification)).scalars())
        self.assertEqual(remaining, ['0 days', '6 days', '7 days'])

    def test_retention_is_idempotent(self) -> None:
        now = utcnow()
        self.db.add(Notification(title='stale', message='old', created_at=now - timedelta(days=10)))
        self.db.commit()

        self.assertEqual(delete_old_notifications(self.db, days=7, now=now), 1)
        self.assertEqual(delete_old_notifications(self.db, days=7, now=now), 0)

    def test_negative_retention_is_rejected(self) -> None:
        with self.assertRaises(ValidationFailed):
            delete_old_notifications(self.db, days=-1)

    def test_invalid_related_id_is_dropped(self) -> None:
        notification = create_notification(self.db, title='Hello', message='World', related_id='not-an-id')
        self.assertIsNone(notification.related_id)

    def test_related_id_is_normalised(self) -> None:
        notification = create_notification(self.db, title='Hello', message='World', related_id='AB' * 12)
        self.assertEqual(notification.related_id, 'ab' * 12)

    def test_list_filters_by_read_and_type(self) -> None:
        create_notification(self.db, title='Quote', message='new quote', type=NotificationType.NEW_QUOTE_REQUEST)
        read = create_notification(self.db, title='Info', message='read already')
        read.read = True
        self.db.commit()

        unread = list_notifications(self.db, read=False)
        self.assertEqual([row.title for row in unread.rows], ['Quote'])
        quotes = list_notifications(self.db, type='new_quote_request')
        self.assertEqual(quotes.total, 1)
        self.assertEqual(quotes.pagination()['total_pages'], 1)

    def test_list_rejects_unknown_type(self) -> None:
        with self.assertRaises(ValidationFailed):
            list_notifications(self.db, type='carrier_pigeon')

    def test_mark_read_unread_and_mark_all(self) -> None:
        first = create_notification(self.db, title='One', message='1')
        create_notification(self.db, title='Two', message='2')
        self.db.commit()

        self.assertTrue(set_notification_read(self.db, notification_id=first.id).read)
        self.assertFalse(set_notification_read(self.db, notification_id=first.id, read=False).read)
        self.db.commit()

        self.assertEqual(mark_all_read(self.db), 2)
        self.db.commit()
        self.assertEqual(list_notifications(self.db, read=False).total, 0)

    def test_delete_unknown_notification_is_not_found(self) -> None:
        with self.assertRaises(NotFoundError):
            delete_notification(self.db, notification_id='f' * 24)

    def test_delete_removes_row(self) -> None:
        notification = create_notification(self.db, title='Bye', message='gone')
        self.db.commit()
        delete_notification(self.db, notification_id=notification.id)
        self.db.commit()
        self.assertEqual(self._count(), 0)


if __name__ == '__main__':
    unittest.main()
