import logging

from sqlalchemy.orm import Session

from database.repositories import (
    UserRepository,
    NotificationRepository,
    BookingRepository,
    EscrowRepository,
    OrderRepository,
    FinanceRepository,
    RentalRepository,
    EnrollmentRepository,
    ConversationRepository,
    MessageRepository,
    LiveChatRepository,
    ReferralRepository,
    SubscriptionRepository,
    JobRepository,
)

logger = logging.getLogger(__name__)


class MarketplaceRepository:
    """
    Facade composing the per-collaborator repositories over one Session.

    Detectors and the dispatcher only ever see this object, so a unit of
    work hands out one facade and every query inside it shares the
    same transaction.
    """

    def __init__(self, db: Session):
        self.db = db
        self.users = UserRepository(db)
        self.notifications = NotificationRepository(db)
        self.bookings = BookingRepository(db)
        self.escrows = EscrowRepository(db)
        self.orders = OrderRepository(db)
        self.finance = FinanceRepository(db)
        self.rentals = RentalRepository(db)
        self.enrollments = EnrollmentRepository(db)
        self.conversations = ConversationRepository(db)
        self.messages = MessageRepository(db)
        self.livechat = LiveChatRepository(db)
        self.referrals = ReferralRepository(db)
        self.subscriptions = SubscriptionRepository(db)
        self.jobs = JobRepository(db)

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()
