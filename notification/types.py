"""
Notification types and the static routing table.

Each type maps to the settings category used for email/push preferences,
an optional SMS sub-category, and a default priority. The table must cover
every `NotificationType` member; this is asserted when the module loads.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Union


class NotificationPriority(Enum):
    """Priority levels for notifications."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class Category(Enum):
    """Preference categories shared by the email and push channels."""
    BOOKING_UPDATES = "booking_updates"
    JOB_MATCHES = "job_matches"
    NEW_MESSAGES = "new_messages"
    PAYMENT_UPDATES = "payment_updates"
    REFERRAL_UPDATES = "referral_updates"
    SYSTEM_UPDATES = "system_updates"
    MARKETING = "marketing"


class SmsCategory(Enum):
    URGENT_MESSAGES = "urgent_messages"
    BOOKING_REMINDERS = "booking_reminders"
    PAYMENT_ALERTS = "payment_alerts"
    SECURITY_ALERTS = "security_alerts"


class NotificationType(Enum):
    # Bookings
    BOOKING_CREATED = "booking_created"
    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_CANCELLED = "booking_cancelled"
    BOOKING_COMPLETED = "booking_completed"
    BOOKING_IN_PROGRESS = "booking_in_progress"
    BOOKING_CONFIRMATION_NEEDED = "booking_confirmation_needed"
    BOOKING_PENDING_SOON = "booking_pending_soon"
    BOOKING_OVERDUE_COMPLETION = "booking_overdue_completion"
    BOOKING_OVERDUE_ADMIN_ALERT = "booking_overdue_admin_alert"

    # Jobs
    JOB_APPLICATION = "job_application"
    APPLICATION_STATUS_UPDATE = "application_status_update"
    JOB_POSTED = "job_posted"
    JOB_DIGEST = "job_digest"
    JOB_APPLICATION_FOLLOWUP = "job_application_followup"

    # Messaging
    MESSAGE_RECEIVED = "message_received"
    MESSAGE_MODERATION_FLAG = "message_moderation_flag"
    MESSAGE_POLICY_WARNING = "message_policy_warning"

    # Payments and subscriptions
    PAYMENT_RECEIVED = "payment_received"
    PAYMENT_FAILED = "payment_failed"
    SUBSCRIPTION_RENEWAL = "subscription_renewal"
    SUBSCRIPTION_CANCELLED = "subscription_cancelled"
    SUBSCRIPTION_DUNNING_REMINDER = "subscription_dunning_reminder"
    SUBSCRIPTION_EXPIRING_SOON = "subscription_expiring_soon"

    # Referrals
    REFERRAL_REWARD = "referral_reward"
    REFERRAL_TIER_UPGRADED = "referral_tier_upgraded"
    REFERRAL_NUDGE = "referral_nudge"

    # Academy and system
    COURSE_ENROLLMENT = "course_enrollment"
    SYSTEM_ANNOUNCEMENT = "system_announcement"
    ACADEMY_NOT_STARTED = "academy_not_started"
    ACADEMY_PROGRESS_STALLED = "academy_progress_stalled"
    ACADEMY_CERTIFICATE_PENDING = "academy_certificate_pending"
    LIVECHAT_SLA_ALERT = "livechat_sla_alert"
    WELCOME_FOLLOWUP_DAY2 = "welcome_followup_day2"
    WELCOME_FOLLOWUP_DAY7 = "welcome_followup_day7"
    PROVIDER_ACTIVATION_NUDGE = "provider_activation_nudge"

    # Marketing
    MARKETING_REENGAGEMENT = "marketing_reengagement"
    MARKETING_WEEKLY_DIGEST = "marketing_weekly_digest"

    # Supplies orders
    ORDER_CONFIRMATION = "order_confirmation"
    ORDER_PAYMENT_PENDING = "order_payment_pending"
    ORDER_SLA_ALERT = "order_sla_alert"
    ORDER_DELIVERY_CONFIRMATION = "order_delivery_confirmation"
    ORDER_DELIVERY_LATE_ALERT = "order_delivery_late_alert"
    ORDER_AUTO_DELIVERED = "order_auto_delivered"
    SUPPLIES_REORDER_REMINDER = "supplies_reorder_reminder"

    # Escrow
    ESCROW_DISPUTE_UNRESOLVED = "escrow_dispute_unresolved"
    ESCROW_DISPUTE_EVIDENCE_NEEDED = "escrow_dispute_evidence_needed"

    # Rentals
    RENTAL_DUE_SOON = "rental_due_soon"
    RENTAL_OVERDUE = "rental_overdue"

    # Finance
    LOAN_REPAYMENT_DUE = "loan_repayment_due"
    LOAN_REPAYMENT_OVERDUE = "loan_repayment_overdue"
    SALARY_ADVANCE_DUE = "salary_advance_due"
    SALARY_ADVANCE_OVERDUE = "salary_advance_overdue"

    # Security
    SECURITY_ALERT = "security_alert"
    LOGIN_ALERT = "login_alert"


@dataclass(frozen=True)
class ChannelRoute:
    category: Category
    sms_category: Optional[SmsCategory]
    priority: NotificationPriority


def _route(category: Category, sms_category: Optional[SmsCategory], priority: NotificationPriority) -> ChannelRoute:
    return ChannelRoute(category, sms_category, priority)


_C = Category
_S = SmsCategory
_P = NotificationPriority
T = NotificationType

ROUTING_TABLE: Dict[NotificationType, ChannelRoute] = {
    T.BOOKING_CREATED: _route(_C.BOOKING_UPDATES, _S.BOOKING_REMINDERS, _P.HIGH),
    T.BOOKING_CONFIRMED: _route(_C.BOOKING_UPDATES, _S.BOOKING_REMINDERS, _P.HIGH),
    T.BOOKING_CANCELLED: _route(_C.BOOKING_UPDATES, _S.BOOKING_REMINDERS, _P.HIGH),
    T.BOOKING_COMPLETED: _route(_C.BOOKING_UPDATES, _S.BOOKING_REMINDERS, _P.MEDIUM),
    T.BOOKING_IN_PROGRESS: _route(_C.BOOKING_UPDATES, _S.BOOKING_REMINDERS, _P.MEDIUM),
    T.BOOKING_CONFIRMATION_NEEDED: _route(_C.BOOKING_UPDATES, _S.BOOKING_REMINDERS, _P.HIGH),
    T.BOOKING_PENDING_SOON: _route(_C.BOOKING_UPDATES, _S.BOOKING_REMINDERS, _P.HIGH),
    T.BOOKING_OVERDUE_COMPLETION: _route(_C.BOOKING_UPDATES, _S.BOOKING_REMINDERS, _P.MEDIUM),
    T.BOOKING_OVERDUE_ADMIN_ALERT: _route(_C.SYSTEM_UPDATES, None, _P.HIGH),

    T.JOB_APPLICATION: _route(_C.JOB_MATCHES, None, _P.HIGH),
    T.APPLICATION_STATUS_UPDATE: _route(_C.JOB_MATCHES, None, _P.HIGH),
    T.JOB_POSTED: _route(_C.JOB_MATCHES, None, _P.MEDIUM),
    T.JOB_DIGEST: _route(_C.JOB_MATCHES, None, _P.LOW),
    T.JOB_APPLICATION_FOLLOWUP: _route(_C.JOB_MATCHES, None, _P.MEDIUM),

    T.MESSAGE_RECEIVED: _route(_C.NEW_MESSAGES, _S.URGENT_MESSAGES, _P.MEDIUM),
    T.MESSAGE_MODERATION_FLAG: _route(_C.SYSTEM_UPDATES, None, _P.MEDIUM),
    T.MESSAGE_POLICY_WARNING: _route(_C.SYSTEM_UPDATES, None, _P.LOW),

    T.PAYMENT_RECEIVED: _route(_C.PAYMENT_UPDATES, _S.PAYMENT_ALERTS, _P.HIGH),
    T.PAYMENT_FAILED: _route(_C.PAYMENT_UPDATES, _S.PAYMENT_ALERTS, _P.URGENT),
    T.SUBSCRIPTION_RENEWAL: _route(_C.PAYMENT_UPDATES, _S.PAYMENT_ALERTS, _P.MEDIUM),
    T.SUBSCRIPTION_CANCELLED: _route(_C.PAYMENT_UPDATES, _S.PAYMENT_ALERTS, _P.HIGH),
    T.SUBSCRIPTION_DUNNING_REMINDER: _route(_C.PAYMENT_UPDATES, _S.PAYMENT_ALERTS, _P.MEDIUM),
    T.SUBSCRIPTION_EXPIRING_SOON: _route(_C.PAYMENT_UPDATES, _S.PAYMENT_ALERTS, _P.MEDIUM),

    T.REFERRAL_REWARD: _route(_C.REFERRAL_UPDATES, None, _P.MEDIUM),
    T.REFERRAL_TIER_UPGRADED: _route(_C.REFERRAL_UPDATES, None, _P.LOW),
    T.REFERRAL_NUDGE: _route(_C.REFERRAL_UPDATES, None, _P.LOW),

    T.COURSE_ENROLLMENT: _route(_C.SYSTEM_UPDATES, None, _P.MEDIUM),
    T.SYSTEM_ANNOUNCEMENT: _route(_C.SYSTEM_UPDATES, None, _P.LOW),
    T.ACADEMY_NOT_STARTED: _route(_C.SYSTEM_UPDATES, None, _P.LOW),
    T.ACADEMY_PROGRESS_STALLED: _route(_C.SYSTEM_UPDATES, None, _P.LOW),
    T.ACADEMY_CERTIFICATE_PENDING: _route(_C.SYSTEM_UPDATES, None, _P.MEDIUM),
    T.LIVECHAT_SLA_ALERT: _route(_C.SYSTEM_UPDATES, None, _P.HIGH),
    T.WELCOME_FOLLOWUP_DAY2: _route(_C.SYSTEM_UPDATES, None, _P.LOW),
    T.WELCOME_FOLLOWUP_DAY7: _route(_C.SYSTEM_UPDATES, None, _P.LOW),
    T.PROVIDER_ACTIVATION_NUDGE: _route(_C.SYSTEM_UPDATES, None, _P.LOW),

    T.MARKETING_REENGAGEMENT: _route(_C.MARKETING, None, _P.LOW),
    T.MARKETING_WEEKLY_DIGEST: _route(_C.MARKETING, None, _P.LOW),

    T.ORDER_CONFIRMATION: _route(_C.SYSTEM_UPDATES, None, _P.MEDIUM),
    T.ORDER_PAYMENT_PENDING: _route(_C.PAYMENT_UPDATES, _S.PAYMENT_ALERTS, _P.MEDIUM),
    T.ORDER_SLA_ALERT: _route(_C.SYSTEM_UPDATES, None, _P.MEDIUM),
    T.ORDER_DELIVERY_CONFIRMATION: _route(_C.SYSTEM_UPDATES, None, _P.MEDIUM),
    T.ORDER_DELIVERY_LATE_ALERT: _route(_C.SYSTEM_UPDATES, None, _P.HIGH),
    T.ORDER_AUTO_DELIVERED: _route(_C.SYSTEM_UPDATES, None, _P.MEDIUM),
    T.SUPPLIES_REORDER_REMINDER: _route(_C.SYSTEM_UPDATES, None, _P.LOW),

    T.ESCROW_DISPUTE_UNRESOLVED: _route(_C.SYSTEM_UPDATES, None, _P.HIGH),
    T.ESCROW_DISPUTE_EVIDENCE_NEEDED: _route(_C.SYSTEM_UPDATES, None, _P.MEDIUM),

    T.RENTAL_DUE_SOON: _route(_C.SYSTEM_UPDATES, None, _P.MEDIUM),
    T.RENTAL_OVERDUE: _route(_C.SYSTEM_UPDATES, None, _P.HIGH),

    T.LOAN_REPAYMENT_DUE: _route(_C.PAYMENT_UPDATES, _S.PAYMENT_ALERTS, _P.MEDIUM),
    T.LOAN_REPAYMENT_OVERDUE: _route(_C.PAYMENT_UPDATES, _S.PAYMENT_ALERTS, _P.HIGH),
    T.SALARY_ADVANCE_DUE: _route(_C.PAYMENT_UPDATES, _S.PAYMENT_ALERTS, _P.MEDIUM),
    T.SALARY_ADVANCE_OVERDUE: _route(_C.PAYMENT_UPDATES, _S.PAYMENT_ALERTS, _P.HIGH),

    T.SECURITY_ALERT: _route(_C.SYSTEM_UPDATES, _S.SECURITY_ALERTS, _P.URGENT),
    T.LOGIN_ALERT: _route(_C.SYSTEM_UPDATES, _S.SECURITY_ALERTS, _P.HIGH),
}

FALLBACK_ROUTE = ChannelRoute(Category.SYSTEM_UPDATES, None, NotificationPriority.MEDIUM)

# Types that bypass user preferences when detectors emit them
FORCED_TYPES = frozenset({NotificationType.SECURITY_ALERT})

_missing = [t.value for t in NotificationType if t not in ROUTING_TABLE]
if _missing:
    raise RuntimeError(f"Notification types without a route: {', '.join(_missing)}")

del _missing, _C, _S, _P, T


def type_value(notification_type: Union[NotificationType, str]) -> str:
    if isinstance(notification_type, NotificationType):
        return notification_type.value
    return str(notification_type)


def parse_type(notification_type: Union[NotificationType, str]) -> Optional[NotificationType]:
    """Enum member for a raw string, or None when the type is unknown."""
    if isinstance(notification_type, NotificationType):
        return notification_type
    try:
        return NotificationType(notification_type)
    except ValueError:
        return None


def get_route(notification_type: Union[NotificationType, str]) -> ChannelRoute:
    member = parse_type(notification_type)
    if member is None:
        return FALLBACK_ROUTE
    return ROUTING_TABLE[member]
