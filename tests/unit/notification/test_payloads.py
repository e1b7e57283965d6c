#!/usr/bin/env python3
"""
Tests for payload normalisation and per-channel message rendering.

Usage:
    python -m pytest tests/unit/notification/test_payloads.py -v
"""

import unittest
import uuid
from datetime import date, datetime, timezone

from notification.message_builder import NotificationMessageBuilder, SMS_MAX_LENGTH
from notification.payloads import Payload, build_payload, get_schema, register_payload
from notification.types import NotificationType


class TestBuildPayload(unittest.TestCase):

    def test_ids_and_dates_are_normalised_to_strings(self):
        rental_id = uuid.uuid4()
        payload = build_payload(NotificationType.RENTAL_DUE_SOON, {
            'rental_id': rental_id,
            'end_date': datetime(2025, 3, 1, 18, 30, tzinfo=timezone.utc),
            'role': 'owner',
        })
        self.assertEqual(payload, {'rental_id': str(rental_id), 'end_date': '2025-03-01', 'role': 'owner'})

    def test_timestamps_keep_time_of_day(self):
        payload = build_payload('booking_overdue_completion', {
            'booking_id': 'b-1',
            'due_at': datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc),
        })
        self.assertEqual(payload['due_at'], '2025-01-01T12:00:00+00:00')

    def test_none_fields_are_dropped(self):
        payload = build_payload(NotificationType.BOOKING_CONFIRMED, {'booking_id': 1, 'service_title': None})
        self.assertEqual(payload, {'booking_id': '1'})

    def test_defaults_are_filled(self):
        payload = build_payload(NotificationType.RENTAL_OVERDUE, {'rental_id': 'r-1', 'end_date': date(2025, 2, 1)})
        self.assertEqual(payload['role'], 'renter')

    def test_missing_required_field_raises_value_error(self):
        with self.assertRaises(ValueError):
            build_payload(NotificationType.LOAN_REPAYMENT_DUE, {'loan_id': 'l-1'})

    def test_unknown_field_is_rejected_for_registered_type(self):
        with self.assertRaises(ValueError):
            build_payload(NotificationType.BOOKING_CONFIRMED, {'booking_id': 'b-1', 'colour': 'red'})

    def test_unregistered_type_passes_data_through(self):
        self.assertIsNone(get_schema(NotificationType.SYSTEM_ANNOUNCEMENT))
        data = {'anything': [1, 2], 'url': '/announcements/1'}
        self.assertEqual(build_payload(NotificationType.SYSTEM_ANNOUNCEMENT, data), data)
        self.assertEqual(build_payload('made_up_type', None), {})

    def test_register_payload(self):
        class ExamplePayload(Payload):
            example_id: str

        register_payload('example_event', ExamplePayload)
        self.assertEqual(build_payload('example_event', {'example_id': 'x'}), {'example_id': 'x'})
        with self.assertRaises(ValueError):
            register_payload('example_event', dict)


class TestMessageBuilder(unittest.TestCase):

    def setUp(self):
        self.builder = NotificationMessageBuilder(brand_name="LocalPro", base_url="https://app.localpro.test/")

    def test_sms_is_single_segment(self):
        content = self.builder.build_sms("Booking Confirmed", "x" * 300)
        self.assertEqual(len(content.body), SMS_MAX_LENGTH)
        self.assertTrue(content.body.startswith("LocalPro: Booking Confirmed\n"))

    def test_sms_override_body(self):
        content = self.builder.build_sms("Title", "Message", body="Custom text")
        self.assertEqual(content.body, "Custom text")

    def test_push_data_values_are_strings(self):
        content = self.builder.build_push(
            'booking_confirmed', 'Title', 'Body', {'booking_id': 'b-1', 'count': 3, 'skip': None}, 'high'
        )
        self.assertEqual(content.data, {'type': 'booking_confirmed', 'booking_id': 'b-1', 'count': '3'})
        self.assertEqual(content.android_priority, 'high')
        self.assertEqual(content.android_channel, 'notifications')

    def test_push_message_channel(self):
        content = self.builder.build_push('message_received', 'Title', 'Body', {}, 'medium')
        self.assertEqual(content.android_channel, 'messages')
        self.assertEqual(content.android_priority, 'normal')

    def test_email_escapes_user_content(self):
        content = self.builder.build_email("<b>Hi</b>", "Tom & Jerry", first_name="<script>")
        self.assertIn("&lt;b&gt;Hi&lt;/b&gt;", content.html)
        self.assertIn("Tom &amp; Jerry", content.html)
        self.assertNotIn("<script>", content.html)
        self.assertEqual(content.subject, "<b>Hi</b>")
        self.assertIn("Tom & Jerry", content.text)

    def test_email_action_button_uses_base_url(self):
        content = self.builder.build_email("Title", "Body", data={'url': '/bookings/1', 'action_text': 'Open'})
        self.assertIn('href="https://app.localpro.test/bookings/1"', content.html)
        self.assertIn('>Open</a>', content.html)

    def test_action_url_rejects_non_http(self):
        self.assertIsNone(self.builder.action_url({'url': 'javascript:alert(1)'}))
        self.assertIsNone(self.builder.action_url({}))

    def test_email_overrides(self):
        content = self.builder.build_email("Title", "Body", subject="Custom", html_body="<p>custom</p>")
        self.assertEqual(content.subject, "Custom")
        self.assertEqual(content.html, "<p>custom</p>")


if __name__ == '__main__':
    unittest.main()
