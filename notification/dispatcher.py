#!/usr/bin/env python3
"""
Notification Dispatcher

Single entry point for sending a notification to one user:

1. validate arguments and normalise `data` through the payload registry
2. load the recipient and their merged preferences
3. resolve channels from preferences and the routing table
4. persist the in-app Notification row (its own transaction)
5. fan out to email / sms / push concurrently and settle all of them

A failing channel never affects its siblings or the in-app record.

Usage:
    from notification.dispatcher import Dispatcher

    dispatcher = Dispatcher(uow_factory, clock=SystemClock())
    result = dispatcher.send(
        user_id=user_id,
        notification_type=NotificationType.BOOKING_CONFIRMED,
        title="Booking Confirmed",
        message="Your booking has been confirmed.",
        data={'booking_id': booking_id},
    )
"""

import logging
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Callable, ContextManager, Dict, List, Optional, Union

from redis import Redis
from rq import Queue, Retry

from database.repository import MarketplaceRepository
from notification.channels import NotificationChannelFactory
from notification.errors import ChannelSendFailure, RateLimitException, UserNotFound
from notification.message_builder import NotificationMessageBuilder
from notification.payloads import build_payload
from notification.preferences import PreferenceStore
from notification.router import ChannelSelection, IN_APP_ONLY, resolve_channels
from notification.worker import deliver_channel_task
from notification.types import NotificationPriority, NotificationType, get_route, type_value
from scheduler.clock import Clock, SystemClock

logger = logging.getLogger(__name__)

OUTBOUND_CHANNELS = ('email', 'sms', 'push')


@dataclass
class Recipient:
    user_id: str
    email: Optional[str] = None
    phone_number: Optional[str] = None
    first_name: Optional[str] = None
    push_tokens: List[str] = field(default_factory=list)

    def has_contact(self, channel: str) -> bool:
        if channel == 'email':
            return bool(self.email)
        if channel == 'sms':
            return bool(self.phone_number)
        if channel == 'push':
            return bool(self.push_tokens)
        return False


@dataclass
class ChannelResult:
    success: bool
    error: Optional[str] = None
    queued: bool = False
    job_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {'success': self.success}
        if self.error:
            result['error'] = self.error
        if self.queued:
            result['queued'] = True
            result['job_id'] = self.job_id
        return result


@dataclass
class DispatchResult:
    success: bool
    notification: Optional[Dict[str, Any]] = None
    channel_results: Dict[str, ChannelResult] = field(default_factory=dict)
    error: Optional[str] = None


class Dispatcher:
    def __init__(
        self,
        uow_factory: Callable[[], ContextManager[MarketplaceRepository]],
        clock: Optional[Clock] = None,
        channel_factory=NotificationChannelFactory,
        message_builder: Optional[NotificationMessageBuilder] = None,
        preference_store: Optional[PreferenceStore] = None,
        channel_timeout_seconds: float = 10.0,
        use_async_queue: bool = False,
        redis_url: str = 'redis://localhost:6379/0',
    ):
        """
        Args:
            uow_factory: Callable returning a unit-of-work context manager
            clock: Source of `created_at` for Notification rows
            channel_factory: Registry resolving channel names to channels
            channel_timeout_seconds: Upper bound for one channel send, counted
                from when that send starts
            use_async_queue: Hand outbound sends to the RQ `notifications` queue
        """
        self.uow_factory = uow_factory
        self.clock = clock or SystemClock()
        self.channel_factory = channel_factory
        self.message_builder = message_builder or NotificationMessageBuilder()
        self.preferences = preference_store or PreferenceStore(uow_factory)
        self.channel_timeout_seconds = channel_timeout_seconds

        self.queue = None
        self.async_mode = False
        if use_async_queue:
            try:
                redis_conn = Redis.from_url(redis_url)
                # Validate connection with ping before using
                redis_conn.ping()
                self.queue = Queue('notifications', connection=redis_conn)
                self.async_mode = True
                logger.info("Dispatcher connected to Redis; outbound sends are queued")
            except Exception as e:
                logger.error(f"Redis connection failed: {e}. Falling back to sync mode.")

    def close(self) -> None:
        if self.queue is not None:
            self.queue.connection.close()

    def send(
        self,
        user_id: Any,
        notification_type: Union[NotificationType, str],
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        priority: Optional[Union[NotificationPriority, str]] = None,
        force_channels: bool = False,
        email_options: Optional[Dict[str, Any]] = None,
        sms_options: Optional[Dict[str, Any]] = None,
    ) -> DispatchResult:
        """
        Send one notification.

        Returns a DispatchResult for every runtime failure. Raises
        ValueError only for missing arguments or a payload that does not
        fit the schema registered for the type.
        """
        missing = [
            name for name, value in (
                ('user_id', user_id),
                ('notification_type', notification_type),
                ('title', title),
                ('message', message),
            ) if not value
        ]
        if missing:
            raise ValueError(f"Missing required notification fields: {', '.join(missing)}")

        type_name = type_value(notification_type)
        payload = build_payload(type_name, data)
        route = get_route(type_name)
        effective_priority = self._resolve_priority(priority, route.priority)

        try:
            recipient = self._load_recipient(user_id)
        except UserNotFound as e:
            logger.warning(f"Dropping {type_name}: {e}")
            return DispatchResult(success=False, error=str(e))
        except Exception as e:
            logger.error(f"Failed to load recipient {user_id} for {type_name}: {e}")
            return DispatchResult(success=False, error=f"Recipient lookup failed: {e}")

        preference_error = None
        if force_channels:
            selection = resolve_channels({}, route, effective_priority, force_all=True)
        else:
            try:
                prefs = self.preferences.load(recipient.user_id)
                selection = resolve_channels(prefs, route, effective_priority)
            except Exception as e:
                preference_error = f"Preference load failed: {e}"
                logger.error(f"{preference_error} (user {recipient.user_id}); sending in-app only")
                selection = IN_APP_ONLY

        attempted = self._attempted_channels(selection, recipient)

        try:
            with self.uow_factory() as repo:
                row = repo.notifications.create(
                    user_id=recipient.user_id,
                    notification_type=type_name,
                    title=title,
                    message=message,
                    data=payload,
                    priority=effective_priority.value,
                    channels={'in_app': True, **attempted},
                    created_at=self.clock.now(),
                )
                snapshot = row.to_dict()
        except Exception as e:
            logger.error(f"Failed to persist {type_name} notification for user {recipient.user_id}: {e}")
            return DispatchResult(success=False, error=f"Failed to persist notification: {e}")

        channel_results: Dict[str, ChannelResult] = {'in_app': ChannelResult(success=True)}

        if preference_error:
            for channel in OUTBOUND_CHANNELS:
                channel_results[channel] = ChannelResult(success=False, error=preference_error)
        else:
            channel_results.update(self._fan_out(
                attempted, recipient, type_name, title, message, payload,
                effective_priority, email_options or {}, sms_options or {},
            ))

        sent = [name for name, result in channel_results.items() if result.success]
        logger.info(
            f"Notification {snapshot['id']} ({type_name}) for user {recipient.user_id}; "
            f"delivered: {', '.join(sent)}"
        )
        return DispatchResult(success=True, notification=snapshot, channel_results=channel_results)

    # ============ Internals ============

    @staticmethod
    def _resolve_priority(
        priority: Optional[Union[NotificationPriority, str]],
        default: NotificationPriority
    ) -> NotificationPriority:
        if priority is None:
            return default
        if isinstance(priority, NotificationPriority):
            return priority
        return NotificationPriority(priority)

    def _load_recipient(self, user_id: Any) -> Recipient:
        with self.uow_factory() as repo:
            user = repo.users.get_by_id(user_id)
            if user is None:
                raise UserNotFound(user_id)
            return Recipient(
                user_id=str(user.id),
                email=user.email,
                phone_number=user.phone_number,
                first_name=user.first_name,
                push_tokens=repo.users.get_push_tokens(user.id),
            )

    @staticmethod
    def _attempted_channels(selection: ChannelSelection, recipient: Recipient) -> Dict[str, bool]:
        enabled = selection.outbound()
        return {
            channel: bool(enabled[channel] and recipient.has_contact(channel))
            for channel in OUTBOUND_CHANNELS
        }

    def _fan_out(
        self,
        attempted: Dict[str, bool],
        recipient: Recipient,
        type_name: str,
        title: str,
        message: str,
        payload: Dict[str, Any],
        priority: NotificationPriority,
        email_options: Dict[str, Any],
        sms_options: Dict[str, Any],
    ) -> Dict[str, ChannelResult]:
        jobs = {}
        if attempted['email']:
            content = self.message_builder.build_email(
                title, message, recipient.first_name, payload,
                subject=email_options.get('subject'), html_body=email_options.get('html'),
            )
            jobs['email'] = ([recipient.email], content.subject, content.text, {'html': content.html})
        if attempted['sms']:
            content = self.message_builder.build_sms(title, message, body=sms_options.get('body'))
            jobs['sms'] = ([recipient.phone_number], title, content.body, {})
        if attempted['push']:
            content = self.message_builder.build_push(type_name, title, message, payload, priority.value)
            jobs['push'] = (list(recipient.push_tokens), content.title, content.body, {
                'data': content.data,
                'android_priority': content.android_priority,
                'android_channel': content.android_channel,
            })

        if not jobs:
            return {}

        # One thread per channel: no send waits in a queue behind another
        executor = ThreadPoolExecutor(max_workers=len(jobs), thread_name_prefix='notify-channel')
        try:
            futures = {
                executor.submit(self._deliver, channel, *job): channel
                for channel, job in jobs.items()
            }
            done, not_done = wait(futures, timeout=self.channel_timeout_seconds)
        finally:
            executor.shutdown(wait=False)

        results: Dict[str, ChannelResult] = {}
        for future in done:
            channel = futures[future]
            try:
                results[channel] = future.result()
            except Exception as e:
                logger.error(f"{channel} delivery to user {recipient.user_id} failed: {e}")
                results[channel] = ChannelResult(success=False, error=str(e))

        for future in not_done:
            channel = futures[future]
            failure = ChannelSendFailure(channel, f"timed out after {self.channel_timeout_seconds}s")
            logger.error(f"{failure} (user {recipient.user_id})")
            results[channel] = ChannelResult(success=False, error=str(failure))

        return results

    def _deliver(
        self,
        channel_type: str,
        recipients: List[str],
        subject: str,
        body: str,
        metadata: Dict[str, Any]
    ) -> ChannelResult:
        """Send (or enqueue) one channel. Raises ChannelSendFailure when nothing went out."""
        if self.async_mode:
            job = self.queue.enqueue(
                deliver_channel_task,
                {
                    'channel_type': channel_type,
                    'recipients': recipients,
                    'subject': subject,
                    'body': body,
                    'metadata': metadata,
                },
                job_timeout='5m',
                result_ttl=86400,
                retry=Retry(max=3, interval=[30, 60, 120]),
            )
            logger.info(f"Queued {channel_type} delivery as job {job.id}")
            return ChannelResult(success=True, queued=True, job_id=job.id)

        channel = self.channel_factory.get_channel(channel_type)
        delivered = 0
        for recipient in recipients:
            try:
                if channel.send(recipient, subject, body, metadata):
                    delivered += 1
            except RateLimitException as e:
                raise ChannelSendFailure(channel_type, f"rate limited (retry after {e.retry_after}s)") from e

        if delivered == 0:
            raise ChannelSendFailure(channel_type, "transport reported failure")
        return ChannelResult(success=True)
