#!/usr/bin/env python3
"""
Notification Service

Facade over the Dispatcher and BulkDispatcher for callers that think in
business events rather than notification types: booking status changes,
job applications, chat messages, payments, referrals, security alerts and
announcements. Also answers preference queries.

Usage:
    from notification.service import NotificationService

    service = NotificationService(dispatcher, bulk_dispatcher)
    service.notify_booking_status(booking_id, client_id, 'confirmed', 'Deep Cleaning')
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from notification.bulk import BulkDispatcher, BulkDispatchResult
from notification.dispatcher import Dispatcher, DispatchResult
from notification.preferences import PreferenceStore, default_preferences
from notification.types import NotificationPriority, NotificationType, get_route, parse_type

logger = logging.getLogger(__name__)

BOOKING_STATUS_MESSAGES = {
    'pending': (NotificationType.BOOKING_CREATED, "New Booking Created",
                "Your booking for {title} has been created."),
    'confirmed': (NotificationType.BOOKING_CONFIRMED, "Booking Confirmed",
                  "Your booking for {title} has been confirmed."),
    'cancelled': (NotificationType.BOOKING_CANCELLED, "Booking Cancelled",
                  "Your booking for {title} has been cancelled."),
    'completed': (NotificationType.BOOKING_COMPLETED, "Booking Completed",
                  "Your booking for {title} has been completed. Thank you for using our service!"),
    'in_progress': (NotificationType.BOOKING_IN_PROGRESS, "Booking In Progress",
                    "Your booking for {title} is now in progress."),
}

APPLICATION_STATUS_MESSAGES = {
    'pending': "Your application is being reviewed.",
    'reviewing': "The employer is reviewing your application.",
    'shortlisted': "Congratulations! You have been shortlisted.",
    'interviewed': "Thank you for completing the interview.",
    'hired': "Congratulations! You have been hired!",
    'rejected': "Unfortunately, your application was not selected.",
}

SECURITY_ALERT_MESSAGES = {
    'new_device_login': "A new device has logged into your account",
    'password_changed': "Your password has been changed",
    'suspicious_activity': "Suspicious activity detected on your account",
    'two_factor_disabled': "Two-factor authentication has been disabled",
    'email_changed': "Your email address has been changed",
}

PAYMENT_STATUS = {
    'received': (NotificationType.PAYMENT_RECEIVED, "Payment Received",
                 "You have received a payment of {currency} {amount}"),
    'failed': (NotificationType.PAYMENT_FAILED, "Payment Failed",
               "Your payment of {currency} {amount} has failed. Please try again."),
    'refunded': (NotificationType.PAYMENT_RECEIVED, "Payment Refunded",
                 "Your payment of {currency} {amount} has been refunded"),
}

MESSAGE_PREVIEW_LENGTH = 100


def _format_amount(amount: Union[int, float]) -> str:
    if float(amount).is_integer():
        return f"{int(amount):,}"
    return f"{amount:,.2f}"


class NotificationService:
    def __init__(
        self,
        dispatcher: Dispatcher,
        bulk_dispatcher: Optional[BulkDispatcher] = None,
        preference_store: Optional[PreferenceStore] = None,
    ):
        self.dispatcher = dispatcher
        self.bulk = bulk_dispatcher or BulkDispatcher(dispatcher)
        self.preferences = preference_store or dispatcher.preferences

    def send(self, *args, **kwargs) -> DispatchResult:
        return self.dispatcher.send(*args, **kwargs)

    def send_bulk(self, *args, **kwargs) -> BulkDispatchResult:
        return self.bulk.send_bulk(*args, **kwargs)

    # ============ Helper senders ============

    def notify_booking_status(
        self,
        booking_id: Any,
        user_id: Any,
        status: str,
        service_title: Optional[str] = None,
        custom_message: Optional[str] = None,
    ) -> DispatchResult:
        notification_type, title, template = BOOKING_STATUS_MESSAGES.get(
            status,
            (NotificationType.BOOKING_CREATED, "Booking Update", "Your booking status has been updated."),
        )
        return self.dispatcher.send(
            user_id=user_id,
            notification_type=notification_type,
            title=title,
            message=custom_message or template.format(title=service_title or "your service"),
            data={'booking_id': booking_id, 'status': status, 'service_title': service_title},
        )

    def notify_job_application(
        self,
        employer_id: Any,
        applicant_name: str,
        job_title: str,
        job_id: Any = None,
        applicant_id: Any = None,
    ) -> DispatchResult:
        return self.dispatcher.send(
            user_id=employer_id,
            notification_type=NotificationType.JOB_APPLICATION,
            title="New Job Application",
            message=f"{applicant_name} has applied for your job: {job_title}",
            data={
                'job_id': str(job_id) if job_id else None,
                'applicant_id': str(applicant_id) if applicant_id else None,
                'applicant_name': applicant_name,
                'job_title': job_title,
            },
        )

    def notify_application_status(self, applicant_id: Any, job_title: str, status: str) -> DispatchResult:
        status_message = APPLICATION_STATUS_MESSAGES.get(status, "Your application status has been updated.")
        return self.dispatcher.send(
            user_id=applicant_id,
            notification_type=NotificationType.APPLICATION_STATUS_UPDATE,
            title="Application Status Updated",
            message=f"Your application for {job_title} has been {status}. {status_message}",
            data={'job_title': job_title, 'status': status},
        )

    def notify_message(
        self,
        user_id: Any,
        sender_name: str,
        conversation_id: Any,
        preview: Optional[str] = None,
        urgent: bool = False,
        sender_id: Any = None,
    ) -> DispatchResult:
        message = (preview or "")[:MESSAGE_PREVIEW_LENGTH] or "You have a new message"
        return self.dispatcher.send(
            user_id=user_id,
            notification_type=NotificationType.MESSAGE_RECEIVED,
            title=f"New message from {sender_name}",
            message=message,
            data={'conversation_id': conversation_id, 'sender_id': sender_id, 'sender_name': sender_name},
            priority=NotificationPriority.HIGH if urgent else NotificationPriority.MEDIUM,
        )

    def notify_payment(
        self,
        user_id: Any,
        amount: Union[int, float],
        currency: str = 'PHP',
        status: str = 'received',
        payment_id: Any = None,
        description: Optional[str] = None,
    ) -> DispatchResult:
        notification_type, title, template = PAYMENT_STATUS.get(
            status,
            (NotificationType.PAYMENT_RECEIVED, "Payment Update", "Your payment status has been updated."),
        )
        return self.dispatcher.send(
            user_id=user_id,
            notification_type=notification_type,
            title=title,
            message=description or template.format(currency=currency, amount=_format_amount(amount)),
            data={
                'payment_id': str(payment_id) if payment_id else None,
                'amount': amount,
                'currency': currency,
                'status': status,
            },
            priority=NotificationPriority.URGENT if status == 'failed' else NotificationPriority.HIGH,
        )

    def notify_referral_reward(
        self,
        user_id: Any,
        referred_user_name: str,
        reward_amount: Union[int, float],
        currency: str = 'PHP',
        referred_user_id: Any = None,
    ) -> DispatchResult:
        return self.dispatcher.send(
            user_id=user_id,
            notification_type=NotificationType.REFERRAL_REWARD,
            title="Referral Reward Earned!",
            message=f"You earned {currency} {_format_amount(reward_amount)} for referring {referred_user_name}!",
            data={
                'referred_user_id': str(referred_user_id) if referred_user_id else None,
                'referred_user_name': referred_user_name,
                'reward_amount': reward_amount,
                'currency': currency,
            },
        )

    def notify_security_alert(
        self,
        user_id: Any,
        alert_type: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> DispatchResult:
        """Security alerts go out on every channel regardless of preferences."""
        data = dict(details or {})
        data['alert_type'] = alert_type
        data['timestamp'] = self.dispatcher.clock.now().isoformat()
        return self.dispatcher.send(
            user_id=user_id,
            notification_type=NotificationType.SECURITY_ALERT,
            title="Security Alert",
            message=SECURITY_ALERT_MESSAGES.get(alert_type, "A security event occurred on your account"),
            data=data,
            priority=NotificationPriority.URGENT,
            force_channels=True,
        )

    def announce(
        self,
        user_ids: Sequence[Any],
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> BulkDispatchResult:
        return self.bulk.send_bulk(
            user_ids,
            NotificationType.SYSTEM_ANNOUNCEMENT,
            title,
            message,
            data=data,
            priority=NotificationPriority.LOW,
        )

    # ============ Preference queries ============

    def get_user_settings(self, user_id: Any) -> Dict[str, Dict[str, bool]]:
        """Merged preferences, or the defaults when they cannot be loaded."""
        try:
            return self.preferences.load(user_id)
        except Exception as e:
            logger.error(f"Error getting notification settings for {user_id}: {e}")
            return default_preferences()

    def is_notification_enabled(
        self,
        user_id: Any,
        notification_type: Union[NotificationType, str],
        channel: str = 'push',
    ) -> bool:
        """
        Whether `channel` would carry `notification_type` for this user.
        Unknown types are enabled.
        """
        if channel == 'in_app':
            return True
        if parse_type(notification_type) is None:
            return True

        settings = self.get_user_settings(user_id)
        channel_settings = settings.get(channel) or {}
        if not channel_settings.get('enabled'):
            return False

        route = get_route(notification_type)
        if channel == 'sms':
            category = route.sms_category.value if route.sms_category else None
        else:
            category = route.category.value
        if category is None:
            return channel != 'sms'
        return channel_settings.get(category) is not False
