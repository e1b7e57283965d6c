#!/usr/bin/env python3
"""
Tests for the RQ delivery task and the shared Redis rate limiter.

Usage:
    python -m pytest tests/unit/notification/test_worker.py -v
"""

import time
import unittest
from unittest.mock import MagicMock, patch

from notification.errors import RateLimitException
from notification.worker import NotificationRateLimiter, deliver_channel_task


def _job(channel_type='sms', recipients=('+639171234567',)):
    return {
        'channel_type': channel_type,
        'recipients': list(recipients),
        'subject': 'Booking Confirmed',
        'body': 'Your booking is confirmed.',
        'metadata': {},
    }


class TestNotificationRateLimiter(unittest.TestCase):

    @patch('notification.worker.Redis')
    def test_no_limit_means_no_wait(self, mock_redis):
        mock_redis.from_url.return_value.get.return_value = None
        limiter = NotificationRateLimiter('redis://localhost:6379/0')
        self.assertEqual(limiter.get_wait_time('sms'), 0)

    @patch('notification.worker.Redis')
    def test_wait_is_capped(self, mock_redis):
        mock_redis.from_url.return_value.get.return_value = str(time.time() + 1000).encode()
        limiter = NotificationRateLimiter('redis://localhost:6379/0', max_wait_seconds=60)
        self.assertEqual(limiter.get_wait_time('sms'), 60)

    @patch('notification.worker.Redis')
    def test_garbage_value_is_ignored(self, mock_redis):
        mock_redis.from_url.return_value.get.return_value = b'not-a-number'
        limiter = NotificationRateLimiter('redis://localhost:6379/0')
        self.assertEqual(limiter.get_wait_time('sms'), 0)

    @patch('notification.worker.Redis')
    def test_set_rate_limit_writes_expiring_key(self, mock_redis):
        redis = mock_redis.from_url.return_value
        NotificationRateLimiter('redis://localhost:6379/0').set_rate_limit('push', 30)

        key, ttl, _ = redis.setex.call_args[0]
        self.assertEqual(key, 'notification:rate_limit:push')
        self.assertEqual(ttl, 35)


class TestDeliverChannelTask(unittest.TestCase):

    def setUp(self):
        redis_patcher = patch('notification.worker.Redis')
        self.mock_redis = redis_patcher.start()
        self.addCleanup(redis_patcher.stop)
        self.redis = self.mock_redis.from_url.return_value
        self.redis.get.return_value = None

        factory_patcher = patch('notification.worker.NotificationChannelFactory')
        self.mock_factory = factory_patcher.start()
        self.addCleanup(factory_patcher.stop)
        self.channel = MagicMock()
        self.mock_factory.get_channel.return_value = self.channel

    def test_delivers_to_every_recipient(self):
        self.channel.send.side_effect = [True, False]

        result = deliver_channel_task(_job('push', ['token-1', 'token-2']))

        self.assertEqual(result, {'channel_type': 'push', 'delivered': 1})
        self.mock_factory.get_channel.assert_called_once_with('push')
        self.assertEqual(self.channel.send.call_count, 2)
        self.channel.send.assert_any_call('token-1', 'Booking Confirmed', 'Your booking is confirmed.', {})

    def test_all_recipients_failing_raises(self):
        self.channel.send.return_value = False
        with self.assertRaises(RuntimeError):
            deliver_channel_task(_job())

    def test_rate_limit_is_shared_and_reraised(self):
        self.channel.send.side_effect = RateLimitException("slow down", retry_after=45)

        with self.assertRaises(RateLimitException):
            deliver_channel_task(_job())

        key, ttl, _ = self.redis.setex.call_args[0]
        self.assertEqual(key, 'notification:rate_limit:sms')
        self.assertEqual(ttl, 50)

    @patch('notification.worker.time.sleep')
    def test_waits_out_active_rate_limit(self, mock_sleep):
        self.redis.get.return_value = str(time.time() + 20).encode()
        self.channel.send.return_value = True

        deliver_channel_task(_job())

        mock_sleep.assert_called_once()
        self.assertGreater(mock_sleep.call_args[0][0], 0)
        self.assertLessEqual(mock_sleep.call_args[0][0], 20)


if __name__ == '__main__':
    unittest.main()
