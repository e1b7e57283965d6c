from .base import Base, JSONType, utcnow, ensure_utc
from .user import User, UserRole, UserSettings, PushToken
from .notification import Notification
from .marketplace import Booking, Escrow
from .supplies import Order
from .finance import Loan, LoanRepayment, SalaryAdvance
from .rentals import Rental
from .academy import Course, Enrollment
from .communication import Conversation, ConversationParticipant, Message, LiveChatSession
from .membership import UserReferral, UserSubscription
from .jobs import Job, JobApplication

__all__ = [
    'Base',
    'JSONType',
    'utcnow',
    'ensure_utc',
    'User',
    'UserRole',
    'UserSettings',
    'PushToken',
    'Notification',
    'Booking',
    'Escrow',
    'Order',
    'Loan',
    'LoanRepayment',
    'SalaryAdvance',
    'Rental',
    'Course',
    'Enrollment',
    'Conversation',
    'ConversationParticipant',
    'Message',
    'LiveChatSession',
    'UserReferral',
    'UserSubscription',
    'Job',
    'JobApplication',
]
