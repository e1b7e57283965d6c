from database.repositories.base import BaseRepository, as_uuid
from database.repositories.user import UserRepository
from database.repositories.notification import NotificationRepository
from database.repositories.booking import BookingRepository, EscrowRepository
from database.repositories.order import OrderRepository
from database.repositories.finance import FinanceRepository
from database.repositories.rental import RentalRepository
from database.repositories.academy import EnrollmentRepository
from database.repositories.messaging import ConversationRepository, MessageRepository, LiveChatRepository
from database.repositories.membership import ReferralRepository, SubscriptionRepository
from database.repositories.jobs import JobRepository

__all__ = [
    'BaseRepository',
    'as_uuid',
    'UserRepository',
    'NotificationRepository',
    'BookingRepository',
    'EscrowRepository',
    'OrderRepository',
    'FinanceRepository',
    'RentalRepository',
    'EnrollmentRepository',
    'ConversationRepository',
    'MessageRepository',
    'LiveChatRepository',
    'ReferralRepository',
    'SubscriptionRepository',
    'JobRepository',
]
