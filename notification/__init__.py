"""
Notification Module

Dispatching of marketplace notifications to in-app, email, SMS and push,
with preference-aware routing, deduplication against the notification log
and optional async delivery through RQ.

Usage:
    from notification import Dispatcher, NotificationType

    dispatcher = Dispatcher(uow_factory)
    result = dispatcher.send(
        user_id=user_id,
        notification_type=NotificationType.PAYMENT_RECEIVED,
        title='Payment Received',
        message='You have received a payment of PHP 1,500',
    )
"""

from notification.errors import (
    NotificationError,
    UserNotFound,
    ChannelSendFailure,
    DetectorQueryFailure,
    DedupCheckFailure,
    RateLimitException,
)

from notification.types import (
    NotificationType,
    NotificationPriority,
    Category,
    SmsCategory,
    ChannelRoute,
    ROUTING_TABLE,
    FALLBACK_ROUTE,
    get_route,
)

from notification.channels import (
    NotificationChannel,
    EmailChannel,
    SmsChannel,
    PushChannel,
    NotificationChannelFactory,
)

from notification.router import ChannelSelection, resolve_channels
from notification.preferences import PreferenceStore, merge_preferences, default_preferences
from notification.tracker import NotificationTrackerService, DedupKey
from notification.dispatcher import Dispatcher, DispatchResult, ChannelResult
from notification.bulk import BulkDispatcher, BulkDispatchResult
from notification.service import NotificationService

__all__ = [
    # Errors
    'NotificationError',
    'UserNotFound',
    'ChannelSendFailure',
    'DetectorQueryFailure',
    'DedupCheckFailure',
    'RateLimitException',
    # Types and routing
    'NotificationType',
    'NotificationPriority',
    'Category',
    'SmsCategory',
    'ChannelRoute',
    'ROUTING_TABLE',
    'FALLBACK_ROUTE',
    'get_route',
    'ChannelSelection',
    'resolve_channels',
    'PreferenceStore',
    'merge_preferences',
    'default_preferences',
    # Channels
    'NotificationChannel',
    'EmailChannel',
    'SmsChannel',
    'PushChannel',
    'NotificationChannelFactory',
    # Dispatch
    'NotificationTrackerService',
    'DedupKey',
    'Dispatcher',
    'DispatchResult',
    'ChannelResult',
    'BulkDispatcher',
    'BulkDispatchResult',
    'NotificationService',
]
