#!/usr/bin/env python3
"""
Integration tests for the notification log and guarded writes on PostgreSQL.

The JSONB dedup lookup and the conditional status UPDATE behave differently
on PostgreSQL than on the SQLite file the unit tests use, so they are
exercised here against a real server.

Usage:
    python -m pytest tests/integration/test_postgres_notifications.py -v -m db

Or with an external database:
    TEST_DATABASE_URL=postgresql://... python -m pytest tests/integration/test_postgres_notifications.py -v
"""

import unittest
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import timedelta

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from database.models import Base, Booking, User
from database.uow import make_uow_factory
from notification.dispatcher import Dispatcher
from notification.tracker import DedupKey, NotificationTrackerService
from scheduler.clock import FrozenClock
from tests.mocks.marketplace import RecordingChannelFactory


@pytest.mark.db
class TestPostgresNotifications(unittest.TestCase):
    """
    The test database is managed by the test_database fixture in conftest.py.
    Every test works on fresh user ids, so rows from other tests never match.
    """

    @pytest.fixture(scope="class")
    def db_engine(self, test_database):
        engine = create_engine(test_database)
        Base.metadata.create_all(engine)
        yield engine
        Base.metadata.drop_all(engine)
        engine.dispose()

    @pytest.fixture(autouse=True)
    def setup(self, db_engine):
        self.uow = make_uow_factory(sessionmaker(autocommit=False, autoflush=False, bind=db_engine))
        self.clock = FrozenClock()
        self.channels = RecordingChannelFactory()
        self.dispatcher = Dispatcher(self.uow, clock=self.clock, channel_factory=self.channels)
        self.tracker = NotificationTrackerService(self.uow, clock=self.clock)
        yield
        self.dispatcher.close()

    def _add_user(self):
        user_id = uuid.uuid4()
        with self.uow() as repo:
            repo.db.add(User(id=user_id, email=f"pg-{user_id.hex[:8]}@example.com",
                             first_name="Pg", last_name="User", is_active=True))
        return user_id

    def test_dedup_lookup_on_jsonb(self):
        user_id = self._add_user()
        result = self.dispatcher.send(
            user_id=user_id,
            notification_type='subscription_dunning_reminder',
            title="Payment reminder",
            message="Your subscription payment is 3 days overdue",
            data={'subscription_id': 'sub-1', 'day': 3},
        )
        self.assertTrue(result.success, result.error)

        same_day = DedupKey.build(user_id, 'subscription_dunning_reminder',
                                  {'subscription_id': 'sub-1', 'day': 3})
        later_day = DedupKey.build(user_id, 'subscription_dunning_reminder',
                                   {'subscription_id': 'sub-1', 'day': 7})
        window = timedelta(hours=24)

        self.assertFalse(self.tracker.should_notify(same_day, window))
        self.assertTrue(self.tracker.should_notify(later_day, window))

        self.clock.advance(window + timedelta(seconds=1))
        self.assertTrue(self.tracker.should_notify(same_day, window))

    def test_guarded_transition_has_one_winner(self):
        client_id = self._add_user()
        provider_id = self._add_user()
        booking_id = uuid.uuid4()
        now = self.clock.now()
        with self.uow() as repo:
            repo.db.add(Booking(id=booking_id, client_id=client_id, provider_id=provider_id,
                                status='pending', booking_date=now + timedelta(days=2),
                                created_at=now, updated_at=now))

        def attempt(_):
            with self.uow() as repo:
                return repo.bookings.transition_status(booking_id, 'pending', 'cancelled', now)

        with ThreadPoolExecutor(max_workers=6) as executor:
            outcomes = list(executor.map(attempt, range(6)))

        self.assertEqual(outcomes.count(True), 1)
        with self.uow() as repo:
            self.assertEqual(repo.db.get(Booking, booking_id).status, 'cancelled')
