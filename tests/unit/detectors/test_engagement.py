#!/usr/bin/env python3
"""
Tests for the job, support, messaging, membership, academy and escrow detectors.

Usage:
    python -m pytest tests/unit/detectors/test_engagement.py -v
"""

import unittest
from datetime import timedelta

from detectors.academy import AcademyEngagementDetector, CertificatePendingDetector
from detectors.escrow import EscrowDisputeDetector
from detectors.jobs import JobApplicationFollowupDetector, JobDigestDetector
from detectors.membership import ReferralTierDetector, SubscriptionDunningDetector, SubscriptionExpiringDetector
from detectors.messaging import MessageModerationDetector, MessagingNudgeDetector, contact_leak_reasons
from detectors.support import LiveChatSlaDetector
from scheduler.clock import FrozenClock
from tests.mocks.marketplace import MarketplaceTestDB, RecordingChannelFactory

OPTED_IN = {'email': {'enabled': True, 'job_matches': True}}


class EngagementTestCase(unittest.TestCase):

    def setUp(self):
        self.db = MarketplaceTestDB()
        self.clock = FrozenClock()
        self.now = self.clock.now()
        self.dispatcher = self.db.dispatcher(self.clock, RecordingChannelFactory())
        self.user = self.db.add_user()

    def tearDown(self):
        self.dispatcher.close()
        self.db.close()

    def detector(self, cls, **overrides):
        return self.db.detector(cls, self.dispatcher, self.clock, **overrides)

    def types_for(self, user_id):
        return sorted(r['type'] for r in self.db.notifications(user_id))


class TestJobDetectors(EngagementTestCase):

    def test_application_followup_goes_to_employer(self):
        employer = self.db.add_user(first_name="Employer", roles=('client',))
        job_id = self.db.add_job(employer, self.now - timedelta(days=10))
        application_id = self.db.add_application(job_id, self.user, self.now - timedelta(days=5))
        self.db.add_application(job_id, self.user, self.now - timedelta(days=1))
        self.db.add_application(job_id, self.user, self.now - timedelta(days=5), status='reviewed')

        detector = self.detector(JobApplicationFollowupDetector)
        result = detector.run()

        self.assertEqual(result.sent, 1)
        row = self.db.notifications(employer)[0]
        self.assertEqual(row['type'], 'job_application_followup')
        self.assertEqual(row['data']['application_id'], str(application_id))
        self.assertEqual(row['data']['job_title'], "Aircon Technician")
        self.assertEqual(self.db.notifications(self.user), [])

        self.clock.advance(hours=12)
        self.assertEqual(detector.run().skipped, 1)

    def test_digest_without_new_jobs_is_empty(self):
        self.db.add_user(roles=('provider',), preferences=OPTED_IN)
        self.assertEqual(self.detector(JobDigestDetector).run().scanned, 0)

    def test_digest_goes_to_opted_in_providers_once(self):
        employer = self.db.add_user()
        job_id = self.db.add_job(employer, self.now - timedelta(days=2))
        self.db.add_job(employer, self.now - timedelta(days=2), status='closed')
        self.db.add_job(employer, self.now - timedelta(days=10))

        opted_in = self.db.add_user(roles=('provider',), preferences=OPTED_IN)
        no_prefs = self.db.add_user(roles=('provider',))
        opted_out = self.db.add_user(roles=('provider',), preferences={'email': {'enabled': True}})
        client = self.db.add_user(roles=('client',), preferences=OPTED_IN)

        detector = self.detector(JobDigestDetector)
        result = detector.run()

        self.assertEqual(result.sent, 1)
        row = self.db.notifications(opted_in)[0]
        self.assertEqual(row['type'], 'job_digest')
        self.assertEqual(row['data'], {'since': '2024-12-25', 'job_count': 1, 'job_ids': [str(job_id)]})
        for other in (no_prefs, opted_out, client):
            self.assertEqual(self.db.notifications(other), [])

        self.clock.advance(days=1)
        self.assertEqual(detector.run().skipped, 1)


class TestLiveChatSla(EngagementTestCase):

    def test_waiting_session_alerts_admins(self):
        admin = self.db.add_admin()
        session_id = self.db.add_livechat(self.now - timedelta(minutes=15))
        self.db.add_livechat(self.now - timedelta(minutes=5))
        self.db.add_livechat(self.now - timedelta(minutes=30), status='active')
        self.db.add_livechat(self.now - timedelta(hours=30))

        result = self.detector(LiveChatSlaDetector).run()

        self.assertEqual(result.sent, 1)
        row = self.db.notifications(admin)[0]
        self.assertEqual(row['data'], {'session_id': str(session_id), 'waiting_minutes': 15})
        self.assertIn("Ana has been waiting 15 minutes", row['message'])

    def test_no_admins(self):
        self.db.add_livechat(self.now - timedelta(minutes=15))
        self.assertEqual(self.detector(LiveChatSlaDetector).run().scanned, 0)


class TestMessagingNudge(EngagementTestCase):

    def test_only_unread_participants_are_nudged(self):
        sender = self.db.add_user(first_name="Sender")
        caught_up = self.db.add_user()
        last_message_at = self.now - timedelta(hours=2)
        conversation_id = self.db.add_conversation(sender, last_message_at, {
            sender: last_message_at,
            self.user: None,
            caught_up: last_message_at + timedelta(minutes=5),
        })

        detector = self.detector(MessagingNudgeDetector)
        result = detector.run()

        self.assertEqual(result.sent, 1)
        row = self.db.notifications(self.user)[0]
        self.assertEqual(row['type'], 'message_received')
        self.assertEqual(row['title'], "Unread message from Sender User")
        self.assertEqual(row['data']['conversation_id'], str(conversation_id))
        self.assertEqual(row['data']['last_message_at'], last_message_at.isoformat())
        self.assertEqual(self.db.notifications(sender), [])
        self.assertEqual(self.db.notifications(caught_up), [])

        self.clock.advance(hours=1)
        self.assertEqual(detector.run().skipped, 1)

    def test_stale_read_marker_counts_as_unread(self):
        sender = self.db.add_user()
        last_message_at = self.now - timedelta(hours=3)
        self.db.add_conversation(sender, last_message_at, {
            sender: last_message_at,
            self.user: last_message_at - timedelta(days=1),
        })
        self.assertEqual(self.detector(MessagingNudgeDetector).run().sent, 1)

    def test_recent_conversation_waits(self):
        sender = self.db.add_user()
        self.db.add_conversation(sender, self.now - timedelta(minutes=10), {sender: None, self.user: None})
        self.assertEqual(self.detector(MessagingNudgeDetector).run().scanned, 0)

    def test_max_notifications_caps_the_run(self):
        sender = self.db.add_user()
        for hours in (2, 3, 4):
            at = self.now - timedelta(hours=hours)
            self.db.add_conversation(sender, at, {sender: at, self.db.add_user(): None})

        result = self.detector(MessagingNudgeDetector, max_notifications=2).run()
        self.assertEqual((result.scanned, result.sent), (3, 2))

    def test_already_nudged_conversations_do_not_use_up_the_cap(self):
        sender = self.db.add_user()
        newer = self.now - timedelta(hours=2)
        self.db.add_conversation(sender, newer, {sender: newer, self.user: None})
        detector = self.detector(MessagingNudgeDetector, max_notifications=1)
        self.assertEqual(detector.run().sent, 1)

        other = self.db.add_user()
        older = self.now - timedelta(hours=3)
        self.db.add_conversation(sender, older, {sender: older, other: None})
        self.clock.advance(minutes=10)

        result = detector.run()
        self.assertEqual((result.sent, result.skipped), (1, 1))
        self.assertEqual(self.types_for(other), ['message_received'])
        self.assertEqual(len(self.db.notifications(self.user)), 1)


class TestMessageModeration(EngagementTestCase):

    def test_contact_leak_reasons(self):
        self.assertEqual(contact_leak_reasons("mail me at juan.dela@example.ph"), ['email'])
        self.assertEqual(contact_leak_reasons("call +63 917 123 4567"), ['phone'])
        self.assertEqual(contact_leak_reasons("a@b.co or 09171234567"), ['email', 'phone'])
        self.assertEqual(contact_leak_reasons("See you at 3pm on the 12th"), [])
        self.assertEqual(contact_leak_reasons(None), [])

    def test_flags_for_admins_and_warns_sender(self):
        admin = self.db.add_admin()
        sender = self.db.add_user()
        conversation_id = self.db.add_conversation(sender, self.now, {sender: self.now, self.user: None})
        message_id = self.db.add_message(conversation_id, sender, "text me 0917 123 4567",
                                         self.now - timedelta(minutes=5))
        self.db.add_message(conversation_id, sender, "see you tomorrow", self.now - timedelta(minutes=4))
        self.db.add_message(conversation_id, sender, "old@example.com", self.now - timedelta(hours=1))

        detector = self.detector(MessageModerationDetector)
        result = detector.run()

        self.assertEqual(result.sent, 2)
        flag = self.db.notifications(admin)[0]
        self.assertEqual(flag['type'], 'message_moderation_flag')
        self.assertEqual(flag['data']['message_id'], str(message_id))
        self.assertEqual(flag['data']['reasons'], ['phone'])
        self.assertEqual(self.types_for(sender), ['message_policy_warning'])

        self.clock.advance(minutes=5)
        self.assertEqual(detector.run().skipped, 2)

    def test_sender_warning_can_be_disabled(self):
        sender = self.db.add_user()
        conversation_id = self.db.add_conversation(sender, self.now, {sender: self.now})
        self.db.add_message(conversation_id, sender, "me@example.com", self.now - timedelta(minutes=1))

        self.detector(MessageModerationDetector, warn_sender=False).run()
        self.assertEqual(self.db.notifications(sender), [])


class TestMembership(EngagementTestCase):

    def test_referral_tier_change(self):
        self.db.add_referral(self.user, 'gold', self.now - timedelta(hours=2), total_referrals=12)
        self.db.add_referral(self.db.add_user(), 'bronze', self.now - timedelta(hours=2))
        self.db.add_referral(self.db.add_user(), 'gold', self.now - timedelta(days=3))

        detector = self.detector(ReferralTierDetector)
        result = detector.run()

        self.assertEqual(result.sent, 1)
        row = self.db.notifications(self.user)[0]
        self.assertEqual(row['title'], "You reached Gold tier!")
        self.assertEqual(row['data'], {'tier': 'gold', 'total_referrals': 12})

        self.clock.advance(hours=1)
        self.assertEqual(detector.run().skipped, 1)

    def test_dunning_on_configured_days(self):
        day3 = self.db.add_subscription(self.user, status='past_due',
                                        inactive_since=self.now - timedelta(days=3, hours=2))
        self.db.add_subscription(self.db.add_user(), status='past_due', inactive_since=self.now - timedelta(days=2))
        self.db.add_subscription(self.db.add_user(), status='active', inactive_since=self.now - timedelta(days=3))

        result = self.detector(SubscriptionDunningDetector).run()

        self.assertEqual(result.sent, 1)
        row = self.db.notifications(self.user)[0]
        self.assertEqual(row['data'], {'subscription_id': str(day3), 'day': 3, 'status': 'past_due'})

    def test_dunning_day_boundary(self):
        self.db.add_subscription(self.user, status='expired', inactive_since=self.now - timedelta(days=7))
        rows_before = self.detector(SubscriptionDunningDetector).run()
        self.assertEqual(rows_before.sent, 1)
        self.assertEqual(self.db.notifications(self.user)[0]['data']['day'], 7)

    def test_expiring_subscription(self):
        subscription_id = self.db.add_subscription(self.user, end_date=self.now + timedelta(days=3, hours=1))
        self.db.add_subscription(self.db.add_user(), end_date=self.now + timedelta(days=1))
        self.db.add_subscription(self.db.add_user(), status='cancelled', end_date=self.now + timedelta(days=3, hours=1))

        detector = self.detector(SubscriptionExpiringDetector)
        self.assertEqual(detector.run().sent, 1)

        row = self.db.notifications(self.user)[0]
        self.assertEqual(row['data'], {
            'subscription_id': str(subscription_id), 'end_date': '2025-01-04', 'plan_name': 'LocalPro Plus',
        })
        self.clock.advance(hours=6)
        self.assertEqual(detector.run().skipped, 1)


class TestAcademy(EngagementTestCase):

    def test_certificate_backlog_goes_to_admins(self):
        admin = self.db.add_admin()
        enrollment_id = self.db.add_enrollment(self.user, self.now - timedelta(days=20), status='completed',
                                               overall_progress=100.0, completed_at=self.now - timedelta(days=2))
        self.db.add_enrollment(self.user, self.now - timedelta(days=20), status='completed',
                               overall_progress=100.0, completed_at=self.now - timedelta(hours=2))

        self.assertEqual(self.detector(CertificatePendingDetector, notify_admins=False).run().scanned, 0)

        result = self.detector(CertificatePendingDetector).run()
        self.assertEqual(result.sent, 1)
        row = self.db.notifications(admin)[0]
        self.assertEqual(row['data']['enrollment_id'], str(enrollment_id))
        self.assertEqual(row['data']['student_id'], str(self.user))
        self.assertEqual(self.db.notifications(self.user), [])

    def test_engagement_nudges(self):
        self.db.add_enrollment(self.user, self.now - timedelta(days=4))
        stalled = self.db.add_user()
        self.db.add_enrollment(stalled, self.now - timedelta(days=20), status='in_progress',
                               overall_progress=40.0, updated_at=self.now - timedelta(days=6))
        active = self.db.add_user()
        self.db.add_enrollment(active, self.now - timedelta(days=20), status='in_progress',
                               overall_progress=40.0, updated_at=self.now - timedelta(days=1))
        fresh = self.db.add_user()
        self.db.add_enrollment(fresh, self.now - timedelta(days=1))

        result = self.detector(AcademyEngagementDetector).run()

        self.assertEqual(result.sent, 2)
        self.assertEqual(self.types_for(self.user), ['academy_not_started'])
        stalled_row = self.db.notifications(stalled)[0]
        self.assertEqual(stalled_row['type'], 'academy_progress_stalled')
        self.assertIn("40%", stalled_row['message'])
        self.assertEqual(stalled_row['data']['course_title'], "Basic Plumbing")
        self.assertEqual(self.db.notifications(active), [])
        self.assertEqual(self.db.notifications(fresh), [])


class TestEscrowDispute(EngagementTestCase):

    def setUp(self):
        super().setUp()
        self.provider = self.db.add_user(roles=('provider',))

    def test_old_dispute_without_evidence(self):
        admin = self.db.add_admin()
        escrow_id = self.db.add_escrow(self.user, self.provider, self.now - timedelta(days=4))

        detector = self.detector(EscrowDisputeDetector)
        result = detector.run()

        self.assertEqual(result.sent, 3)
        self.assertEqual(self.types_for(admin), ['escrow_dispute_unresolved'])
        self.assertEqual(self.types_for(self.user), ['escrow_dispute_evidence_needed'])
        self.assertEqual(self.types_for(self.provider), ['escrow_dispute_evidence_needed'])
        self.assertEqual(self.db.notifications(admin)[0]['data']['escrow_id'], str(escrow_id))

        self.clock.advance(hours=2)
        self.assertEqual(detector.run().skipped, 3)

    def test_recent_or_evidenced_disputes(self):
        admin = self.db.add_admin()
        self.db.add_escrow(self.user, self.provider, self.now - timedelta(hours=2))
        self.db.add_escrow(self.user, self.provider, self.now - timedelta(hours=10), evidence_count=2)
        self.db.add_escrow(self.user, self.provider, self.now - timedelta(days=5), status='released')

        self.assertEqual(self.detector(EscrowDisputeDetector).run().scanned, 0)
        self.assertEqual(self.db.notifications(admin), [])

    def test_admins_skipped_when_disabled(self):
        admin = self.db.add_admin()
        self.db.add_escrow(self.user, self.provider, self.now - timedelta(days=4))

        result = self.detector(EscrowDisputeDetector, notify_admins=False).run()

        self.assertEqual(result.sent, 2)
        self.assertEqual(self.db.notifications(admin), [])


if __name__ == '__main__':
    unittest.main()
