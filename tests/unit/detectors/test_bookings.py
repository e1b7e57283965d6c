#!/usr/bin/env python3
"""
Tests for booking detectors and the booking/order state transitions.

Usage:
    python -m pytest tests/unit/detectors/test_bookings.py -v
"""

import unittest
from datetime import timedelta
from unittest.mock import patch

from database.repositories.booking import BookingRepository
from detectors.bookings import (
    BookingFollowupDetector,
    BookingOverdueDetector,
    BookingReminderDetector,
    ReviewRequestDetector,
)
from detectors.transitions import BookingTransitionDetector, OrderAutoDeliverDetector
from scheduler.clock import FrozenClock
from tests.mocks.marketplace import MarketplaceTestDB, RecordingChannelFactory


class BookingDetectorTestCase(unittest.TestCase):

    def setUp(self):
        self.db = MarketplaceTestDB()
        self.clock = FrozenClock()
        self.now = self.clock.now()
        self.channels = RecordingChannelFactory()
        self.dispatcher = self.db.dispatcher(self.clock, self.channels)
        self.client = self.db.add_user(first_name="Client")
        self.provider = self.db.add_user(first_name="Provider", roles=('provider',))

    def tearDown(self):
        self.dispatcher.close()
        self.db.close()

    def detector(self, cls, **overrides):
        return self.db.detector(cls, self.dispatcher, self.clock, **overrides)


class TestBookingReminder(BookingDetectorTestCase):

    def test_reminds_both_parties_per_lead(self):
        day_ahead = self.db.add_booking(self.client, self.provider, self.now + timedelta(hours=24, minutes=5))
        self.db.add_booking(self.client, self.provider, self.now + timedelta(hours=2), status='confirmed')

        result = self.detector(BookingReminderDetector).run()

        self.assertEqual((result.scanned, result.sent), (4, 4))
        client_rows = self.db.notifications(self.client, 'booking_created')
        self.assertEqual(sorted(r['data']['reminder_type'] for r in client_rows), ['24h', '2h'])
        day_row = next(r for r in client_rows if r['data']['reminder_type'] == '24h')
        self.assertEqual(day_row['data']['booking_id'], str(day_ahead))
        self.assertEqual(day_row['title'], "Reminder: Your booking is in 24h")
        self.assertEqual(len(self.db.notifications(self.provider, 'booking_created')), 2)

    def test_outside_window_or_closed_status_is_ignored(self):
        self.db.add_booking(self.client, self.provider, self.now + timedelta(hours=10))
        self.db.add_booking(self.client, self.provider, self.now + timedelta(hours=24), status='cancelled')
        self.db.add_booking(self.client, self.provider, self.now + timedelta(hours=24, minutes=20))

        self.assertEqual(self.detector(BookingReminderDetector).run().scanned, 0)

    def test_second_run_is_deduplicated(self):
        self.db.add_booking(self.client, self.provider, self.now + timedelta(hours=2))
        detector = self.detector(BookingReminderDetector)
        detector.run()

        self.clock.advance(minutes=15)
        result = detector.run()

        self.assertEqual((result.sent, result.skipped), (0, 2))


class TestReviewRequest(BookingDetectorTestCase):

    def test_asks_client_once(self):
        updated = self.now - timedelta(days=4)
        self.db.add_booking(self.client, self.provider, updated - timedelta(hours=3),
                            status='completed', updated_at=updated)

        detector = self.detector(ReviewRequestDetector)
        result = detector.run()

        self.assertEqual(result.sent, 1)
        rows = self.db.notifications(self.client, 'booking_completed')
        self.assertEqual(rows[0]['priority'], 'low')
        self.assertEqual(rows[0]['data']['reminder_type'], 'review_request')
        self.assertEqual(self.db.notifications(self.provider), [])

        self.clock.advance(days=1)
        self.assertEqual(detector.run().skipped, 1)

    def test_reviewed_or_recent_bookings_are_ignored(self):
        self.db.add_booking(self.client, self.provider, self.now - timedelta(days=5),
                            status='completed', updated_at=self.now - timedelta(days=4), review_rating=5)
        self.db.add_booking(self.client, self.provider, self.now - timedelta(days=1),
                            status='completed', updated_at=self.now - timedelta(days=1))
        self.db.add_booking(self.client, self.provider, self.now - timedelta(days=10),
                            status='completed', updated_at=self.now - timedelta(days=10))

        self.assertEqual(self.detector(ReviewRequestDetector).run().scanned, 0)


class TestBookingFollowup(BookingDetectorTestCase):

    def test_pending_request_starting_soon_gets_both_nudges(self):
        self.db.add_booking(self.client, self.provider, self.now + timedelta(hours=10),
                            created_at=self.now - timedelta(hours=3))

        result = self.detector(BookingFollowupDetector).run()

        self.assertEqual(result.sent, 2)
        types = sorted(r['type'] for r in self.db.notifications(self.provider))
        self.assertEqual(types, ['booking_confirmation_needed', 'booking_pending_soon'])
        self.assertEqual(self.db.notifications(self.client), [])

    def test_far_away_booking_gets_confirmation_nudge_only(self):
        self.db.add_booking(self.client, self.provider, self.now + timedelta(days=3),
                            created_at=self.now - timedelta(hours=3))

        self.detector(BookingFollowupDetector).run()

        self.assertEqual([r['type'] for r in self.db.notifications(self.provider)], ['booking_confirmation_needed'])

    def test_fresh_or_past_requests_are_ignored(self):
        self.db.add_booking(self.client, self.provider, self.now + timedelta(hours=10),
                            created_at=self.now - timedelta(hours=1))
        self.db.add_booking(self.client, self.provider, self.now - timedelta(hours=1),
                            created_at=self.now - timedelta(hours=5))

        self.assertEqual(self.detector(BookingFollowupDetector).run().scanned, 0)


class TestBookingOverdue(BookingDetectorTestCase):

    def test_overdue_booking_notifies_each_party_once(self):
        booking_id = self.db.add_booking(self.client, self.provider, self.now - timedelta(hours=3),
                                         status='confirmed', duration_hours=1.0)
        detector = self.detector(BookingOverdueDetector, grace_minutes=120)

        first = detector.run()
        self.assertEqual(first.sent, 2)

        client_row = self.db.notifications(self.client, 'booking_overdue_completion')[0]
        self.assertEqual(client_row['data']['role'], 'client')
        self.assertEqual(client_row['data']['booking_id'], str(booking_id))
        self.assertEqual(client_row['data']['due_at'], self.now.isoformat())
        provider_row = self.db.notifications(self.provider, 'booking_overdue_completion')[0]
        self.assertEqual(provider_row['data']['role'], 'provider')

        self.clock.advance(minutes=30)
        second = detector.run()
        self.assertEqual((second.sent, second.skipped), (0, 2))

    def test_not_yet_past_grace(self):
        self.db.add_booking(self.client, self.provider, self.now - timedelta(hours=2, minutes=30),
                            status='in_progress', duration_hours=1.0)
        result = self.detector(BookingOverdueDetector).run()
        self.assertEqual((result.scanned, result.sent), (0, 0))

    def test_admins_only_when_enabled(self):
        admin = self.db.add_admin()
        self.db.add_booking(self.client, self.provider, self.now - timedelta(hours=4), status='confirmed')

        self.detector(BookingOverdueDetector).run()
        self.assertEqual(self.db.notifications(admin), [])

        self.detector(BookingOverdueDetector, notify_admins=True).run()
        self.assertEqual(
            [r['type'] for r in self.db.notifications(admin)], ['booking_overdue_admin_alert']
        )


class TestBookingTransitions(BookingDetectorTestCase):

    def test_stale_pending_booking_is_cancelled(self):
        booking_id = self.db.add_booking(self.client, self.provider, self.now + timedelta(days=2),
                                         created_at=self.now - timedelta(hours=50))

        result = self.detector(BookingTransitionDetector).run()

        self.assertEqual((result.transitioned, result.sent), (1, 2))
        self.assertEqual(self.db.booking_status(booking_id), 'cancelled')
        self.assertEqual([r['type'] for r in self.db.notifications(self.client)], ['booking_cancelled'])
        self.assertEqual([r['type'] for r in self.db.notifications(self.provider)], ['booking_cancelled'])

    def test_day_old_pending_booking_is_confirmed(self):
        booking_id = self.db.add_booking(self.client, self.provider, self.now + timedelta(days=2),
                                         created_at=self.now - timedelta(hours=30))

        self.detector(BookingTransitionDetector).run()

        self.assertEqual(self.db.booking_status(booking_id), 'confirmed')
        self.assertEqual(self.db.notifications(self.client)[0]['title'], "Booking Auto-Confirmed")

    def test_recent_pending_booking_is_left_alone(self):
        booking_id = self.db.add_booking(self.client, self.provider, self.now + timedelta(days=2),
                                         created_at=self.now - timedelta(hours=10))

        result = self.detector(BookingTransitionDetector).run()

        self.assertEqual(result.scanned, 0)
        self.assertEqual(self.db.booking_status(booking_id), 'pending')

    def test_finished_in_progress_booking_is_completed(self):
        booking_id = self.db.add_booking(self.client, self.provider, self.now - timedelta(hours=2),
                                         status='in_progress', duration_hours=1.0)
        self.db.add_booking(self.client, self.provider, self.now - timedelta(minutes=30),
                            status='in_progress', duration_hours=1.0)

        result = self.detector(BookingTransitionDetector).run()

        self.assertEqual(result.transitioned, 1)
        self.assertEqual(self.db.booking_status(booking_id), 'completed')
        self.assertEqual([r['type'] for r in self.db.notifications(self.client)], ['booking_completed'])
        self.assertEqual(self.db.notifications(self.provider), [])

    def test_auto_complete_can_be_switched_off(self):
        booking_id = self.db.add_booking(self.client, self.provider, self.now - timedelta(hours=2),
                                         status='in_progress')
        self.detector(BookingTransitionDetector, auto_complete=False).run()
        self.assertEqual(self.db.booking_status(booking_id), 'in_progress')

    def test_second_run_finds_nothing(self):
        self.db.add_booking(self.client, self.provider, self.now + timedelta(days=2),
                            created_at=self.now - timedelta(hours=50))
        detector = self.detector(BookingTransitionDetector)
        detector.run()

        result = detector.run()
        self.assertEqual((result.scanned, result.sent), (0, 0))

    def test_lost_race_sends_nothing(self):
        booking_id = self.db.add_booking(self.client, self.provider, self.now + timedelta(days=2),
                                         created_at=self.now - timedelta(hours=30))

        with patch.object(BookingRepository, 'transition_status', return_value=False):
            result = self.detector(BookingTransitionDetector).run()

        self.assertEqual((result.scanned, result.skipped, result.sent), (1, 1, 0))
        self.assertEqual(self.db.booking_status(booking_id), 'pending')
        self.assertEqual(self.db.notifications(), [])


class TestOrderAutoDeliver(BookingDetectorTestCase):

    def test_paid_shipped_order_is_delivered(self):
        order_id = self.db.add_order(self.client, self.now - timedelta(days=15), status='shipped',
                                     payment_status='paid', updated_at=self.now - timedelta(days=11))

        result = self.detector(OrderAutoDeliverDetector).run()

        self.assertEqual((result.transitioned, result.sent), (1, 1))
        order = self.db.order(order_id)
        self.assertEqual(order['status'], 'delivered')
        self.assertIsNotNone(order['actual_delivery'])
        self.assertEqual([r['type'] for r in self.db.notifications(self.client)], ['order_auto_delivered'])

    def test_unpaid_or_recent_orders_stay_shipped(self):
        unpaid = self.db.add_order(self.client, self.now - timedelta(days=15), status='shipped',
                                   payment_status='pending', updated_at=self.now - timedelta(days=11))
        recent = self.db.add_order(self.client, self.now - timedelta(days=6), status='shipped',
                                   payment_status='paid', updated_at=self.now - timedelta(days=5))

        self.assertEqual(self.detector(OrderAutoDeliverDetector).run().scanned, 0)
        self.assertEqual(self.db.order(unpaid)['status'], 'shipped')
        self.assertEqual(self.db.order(recent)['status'], 'shipped')


if __name__ == '__main__':
    unittest.main()
