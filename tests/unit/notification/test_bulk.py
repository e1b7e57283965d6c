#!/usr/bin/env python3
"""
Tests for BulkDispatcher aggregation and per-user failure isolation.

Usage:
    python -m pytest tests/unit/notification/test_bulk.py -v
"""

import time
import unittest
import uuid
from unittest.mock import Mock

from notification.bulk import BulkDispatcher
from notification.dispatcher import DispatchResult
from notification.types import NotificationType
from scheduler.clock import FrozenClock
from tests.mocks.marketplace import MarketplaceTestDB, RecordingChannelFactory


class TestBulkDispatchWithDatabase(unittest.TestCase):

    def setUp(self):
        self.db = MarketplaceTestDB()
        self.clock = FrozenClock()
        self.channels = RecordingChannelFactory()
        self.dispatcher = self.db.dispatcher(self.clock, self.channels)
        self.bulk = BulkDispatcher(self.dispatcher, max_workers=3)

    def tearDown(self):
        self.dispatcher.close()
        self.db.close()

    def test_counts_add_up_and_order_is_kept(self):
        users = [self.db.add_user(first_name=f"User{i}") for i in range(4)]
        missing = uuid.uuid4()
        user_ids = users[:2] + [missing] + users[2:]

        result = self.bulk.send_bulk(
            user_ids, NotificationType.SYSTEM_ANNOUNCEMENT, "Maintenance", "We will be down at midnight."
        )

        self.assertEqual(result.total, 5)
        self.assertEqual(result.success_count, 4)
        self.assertEqual(result.failed_count, 1)
        self.assertEqual(result.success_count + result.failed_count, result.total)
        self.assertEqual([r.user_id for r in result.results], [str(u) for u in user_ids])

        failed = result.results[2]
        self.assertFalse(failed.success)
        self.assertIn('User not found', failed.error)
        self.assertIsNone(failed.notification_id)

        for user_id, item in zip(users, [r for r in result.results if r.success]):
            rows = self.db.notifications(user_id)
            self.assertEqual(len(rows), 1)
            self.assertEqual(rows[0]['id'], item.notification_id)

    def test_every_attempted_channel_is_sent_under_load(self):
        # 10 concurrent sends x 3 channels each, every channel slow but within budget
        dispatcher = self.db.dispatcher(self.clock, self.channels, channel_timeout_seconds=1.0)
        self.addCleanup(dispatcher.close)
        for channel in self.channels.channels.values():
            channel.delay = 0.4
        users = [self.db.add_user(first_name=f"User{i}", push_tokens=(f"token-{i}",)) for i in range(10)]

        result = BulkDispatcher(dispatcher, max_workers=10).send_bulk(
            users, 'payment_failed', "Payment failed", "Your card was declined."
        )

        self.assertEqual(result.success_count, 10)
        rows = self.db.notifications(notification_type='payment_failed')
        self.assertEqual(len(rows), 10)
        attempted = sum(
            1 for row in rows for channel in ('email', 'sms', 'push') if row['channels'].get(channel)
        )
        self.assertEqual(attempted, 30)
        for channel in ('email', 'sms', 'push'):
            self.assertEqual(len(self.channels.sent(channel)), 10, channel)

    def test_empty_input(self):
        result = self.bulk.send_bulk([], NotificationType.SYSTEM_ANNOUNCEMENT, "Title", "Message")
        self.assertEqual((result.total, result.success_count, result.failed_count), (0, 0, 0))
        self.assertEqual(result.results, [])


class TestBulkDispatchIsolation(unittest.TestCase):

    @staticmethod
    def _ok(user_id):
        return DispatchResult(success=True, notification={'id': f"n-{user_id}"})

    def test_exception_for_one_user_does_not_stop_the_batch(self):
        dispatcher = Mock()

        def send(user_id, **kwargs):
            if user_id == 'u2':
                raise RuntimeError("connection reset")
            return self._ok(user_id)

        dispatcher.send.side_effect = send
        result = BulkDispatcher(dispatcher, max_workers=2).send_bulk(
            ['u1', 'u2', 'u3'], NotificationType.SYSTEM_ANNOUNCEMENT, "Title", "Message"
        )

        self.assertEqual(result.success_count, 2)
        self.assertEqual(result.failed_count, 1)
        self.assertEqual(result.results[1].error, "connection reset")
        self.assertEqual(result.results[2].notification_id, "n-u3")

    def test_slow_send_times_out(self):
        dispatcher = Mock()

        def send(user_id, **kwargs):
            if user_id == 'slow':
                time.sleep(1.0)
            return self._ok(user_id)

        dispatcher.send.side_effect = send
        result = BulkDispatcher(dispatcher, max_workers=2, send_timeout_seconds=0.2).send_bulk(
            ['fast', 'slow'], NotificationType.SYSTEM_ANNOUNCEMENT, "Title", "Message"
        )

        self.assertTrue(result.results[0].success)
        self.assertFalse(result.results[1].success)
        self.assertEqual(result.results[1].error, "Timed out")

    def test_arguments_are_forwarded(self):
        dispatcher = Mock()
        dispatcher.send.return_value = self._ok('u1')

        BulkDispatcher(dispatcher).send_bulk(
            ['u1'], NotificationType.SYSTEM_ANNOUNCEMENT, "Title", "Message", data={'url': '/x'}, priority='low'
        )

        dispatcher.send.assert_called_once_with(
            user_id='u1',
            notification_type='system_announcement',
            title="Title",
            message="Message",
            data={'url': '/x'},
            priority='low',
        )


if __name__ == '__main__':
    unittest.main()
