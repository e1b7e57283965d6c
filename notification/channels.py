#!/usr/bin/env python3
"""
Notification Channels

Outbound delivery adapters behind one interface. In-app delivery is the
persisted Notification row itself and has no channel class.

- EmailChannel: SMTP with an HTML alternative part
- SmsChannel: HTTP SMS gateway, single 160-character segment
- PushChannel: FCM HTTP endpoint, one request per device token

Transport credentials come from the environment. With
NOTIFICATION_DRY_RUN=true every channel logs instead of sending.

Usage:
    from notification.channels import NotificationChannelFactory

    channel = NotificationChannelFactory.get_channel('sms')
    channel.send('+639171234567', 'Booking Confirmed', 'See you tomorrow', {})
"""

from abc import ABC, abstractmethod
from typing import Dict, Any
import logging
import os
import smtplib
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

import requests
from tenacity import retry, stop_after_attempt, wait_fixed, retry_if_exception_type

from notification.errors import RateLimitException

logger = logging.getLogger(__name__)

HTTP_TIMEOUT_SECONDS = 10
SMTP_TIMEOUT_SECONDS = 15
FCM_LEGACY_URL = 'https://fcm.googleapis.com/fcm/send'

transient_http_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_fixed(0.5),
    retry=retry_if_exception_type((requests.ConnectionError, requests.Timeout)),
    reraise=True,
)


def _is_dry_run_mode() -> bool:
    """Check if notification channels should run in dry-run (log-only) mode."""
    return os.environ.get('NOTIFICATION_DRY_RUN', '').lower() in ('true', '1', 'yes')


def _mask_email(email: str) -> str:
    """
    Mask email address for safe logging (PII protection).

    Shows only domain, e.g., "***@example.com"
    """
    if '@' not in email:
        return "***"
    local, domain = email.rsplit('@', 1)
    return f"***@{domain}"


def _mask_phone(phone: str) -> str:
    """Keep the last three digits only."""
    digits = ''.join(ch for ch in str(phone) if ch.isdigit())
    if len(digits) <= 3:
        return "***"
    return f"***{digits[-3:]}"


def _mask_token(token: str) -> str:
    return f"{token[:6]}..." if len(token) > 6 else "***"


def _retry_after(response: requests.Response) -> int:
    try:
        return int(response.headers.get('Retry-After', '60'))
    except (TypeError, ValueError):
        return 60


class NotificationChannel(ABC):
    """
    Abstract base class for all notification channels.

    Any channel can be used interchangeably by the dispatcher and the
    RQ worker.
    """

    @property
    @abstractmethod
    def channel_type(self) -> str:
        """Return the channel type identifier."""
        pass

    @abstractmethod
    def send(self, recipient: str, subject: str, body: str, metadata: Dict[str, Any]) -> bool:
        """
        Send a notification through this channel.

        Args:
            recipient: Email address, phone number or push token
            subject: Notification subject/title
            body: Plain text body
            metadata: Channel-specific extras (html, push data, priority)

        Returns:
            True if sent successfully, False otherwise

        Raises:
            RateLimitException: If the transport answered HTTP 429
        """
        pass

    def validate_config(self) -> bool:
        return True


class EmailChannel(NotificationChannel):
    """Email notification channel via SMTP."""

    @property
    def channel_type(self) -> str:
        return 'email'

    def validate_config(self) -> bool:
        required_vars = ['SMTP_SERVER', 'SMTP_PORT', 'SMTP_USERNAME', 'SMTP_PASSWORD']
        return all(os.environ.get(var) for var in required_vars)

    def send(self, recipient: str, subject: str, body: str, metadata: Dict[str, Any]) -> bool:
        if _is_dry_run_mode():
            logger.info(f"[DRY RUN] Email to {_mask_email(recipient)}: {subject}")
            return True

        if not self.validate_config():
            logger.error("Email not configured - SMTP environment variables not set")
            return False

        try:
            smtp_server = os.environ.get('SMTP_SERVER', 'localhost')
            smtp_port = int(os.environ.get('SMTP_PORT', '587'))
            username = os.environ.get('SMTP_USERNAME', '')
            password = os.environ.get('SMTP_PASSWORD', '')
            from_email = os.environ.get('FROM_EMAIL', 'noreply@localpro.app')

            msg = MIMEMultipart('alternative')
            msg['From'] = from_email
            msg['To'] = recipient
            msg['Subject'] = subject
            msg.attach(MIMEText(body, 'plain', 'utf-8'))
            if metadata.get('html'):
                msg.attach(MIMEText(metadata['html'], 'html', 'utf-8'))

            with smtplib.SMTP(smtp_server, smtp_port, timeout=SMTP_TIMEOUT_SECONDS) as server:
                server.starttls()
                server.login(username, password)
                server.send_message(msg)

            logger.info(f"Email sent to {_mask_email(recipient)}")
            return True

        except Exception as e:
            logger.error(f"Failed to send email to {_mask_email(recipient)}: {e}")
            return False


class SmsChannel(NotificationChannel):
    """SMS via an HTTP gateway (SMS_API_URL / SMS_API_KEY / SMS_SENDER_ID)."""

    @property
    def channel_type(self) -> str:
        return 'sms'

    def validate_config(self) -> bool:
        return bool(os.environ.get('SMS_API_URL') and os.environ.get('SMS_API_KEY'))

    def send(self, recipient: str, subject: str, body: str, metadata: Dict[str, Any]) -> bool:
        text = body[:160]

        if _is_dry_run_mode():
            logger.info(f"[DRY RUN] SMS to {_mask_phone(recipient)}: {text!r}")
            return True

        if not self.validate_config():
            logger.error("SMS not configured - SMS_API_URL / SMS_API_KEY not set")
            return False

        payload = {
            'to': recipient,
            'from': os.environ.get('SMS_SENDER_ID', 'LocalPro'),
            'message': text,
        }
        try:
            response = self._post(payload)
        except requests.RequestException as e:
            logger.error(f"Failed to send SMS to {_mask_phone(recipient)}: {e}")
            return False

        if response.status_code == 429:
            raise RateLimitException("SMS gateway rate limited", retry_after=_retry_after(response))

        if 200 <= response.status_code < 300:
            logger.info(f"SMS sent to {_mask_phone(recipient)}")
            return True

        logger.error(f"SMS gateway error: {response.status_code} - {response.text[:200]}")
        return False

    @transient_http_retry
    def _post(self, payload: Dict[str, Any]) -> requests.Response:
        return requests.post(
            os.environ['SMS_API_URL'],
            json=payload,
            headers={'Authorization': f"Bearer {os.environ.get('SMS_API_KEY', '')}"},
            timeout=HTTP_TIMEOUT_SECONDS,
        )


class PushChannel(NotificationChannel):
    """Push via the FCM HTTP endpoint. `recipient` is one device token."""

    @property
    def channel_type(self) -> str:
        return 'push'

    def validate_config(self) -> bool:
        return bool(os.environ.get('FCM_SERVER_KEY'))

    def send(self, recipient: str, subject: str, body: str, metadata: Dict[str, Any]) -> bool:
        if _is_dry_run_mode():
            logger.info(f"[DRY RUN] Push to token {_mask_token(recipient)}: {subject}")
            return True

        if not self.validate_config():
            logger.warning("Push notifications not configured (FCM_SERVER_KEY not set)")
            return False

        payload = {
            'to': recipient,
            'notification': {'title': subject, 'body': body, 'sound': 'default'},
            'data': metadata.get('data', {}),
            'priority': metadata.get('android_priority', 'normal'),
            'android_channel_id': metadata.get('android_channel', 'notifications'),
        }
        try:
            response = self._post(payload)
        except requests.RequestException as e:
            logger.error(f"Failed to send push to token {_mask_token(recipient)}: {e}")
            return False

        if response.status_code == 429:
            raise RateLimitException("FCM rate limited", retry_after=_retry_after(response))

        if response.status_code != 200:
            logger.error(f"FCM error: {response.status_code} - {response.text[:200]}")
            return False

        try:
            result = response.json()
        except ValueError:
            result = {}
        if result.get('failure'):
            logger.warning(f"FCM rejected token {_mask_token(recipient)}: {result.get('results')}")
            return False

        logger.info(f"Push sent to token {_mask_token(recipient)}")
        return True

    @transient_http_retry
    def _post(self, payload: Dict[str, Any]) -> requests.Response:
        return requests.post(
            os.environ.get('FCM_URL', FCM_LEGACY_URL),
            json=payload,
            headers={
                'Authorization': f"key={os.environ.get('FCM_SERVER_KEY', '')}",
                'Content-Type': 'application/json',
            },
            timeout=HTTP_TIMEOUT_SECONDS,
        )


class NotificationChannelFactory:
    """
    Factory for creating notification channels.

    New channels are added with `register_channel` without touching the
    dispatcher.
    """

    # Registry of available channels
    _channels: Dict[str, type] = {
        'email': EmailChannel,
        'sms': SmsChannel,
        'push': PushChannel,
    }

    @classmethod
    def get_channel(cls, channel_type: str) -> NotificationChannel:
        """
        Get a notification channel instance by type.

        Raises:
            ValueError: If channel type is not registered
        """
        channel_class = cls._channels.get(channel_type.lower())
        if not channel_class:
            raise ValueError(f"Unknown channel type: {channel_type}. "
                             f"Available: {', '.join(cls._channels.keys())}")

        return channel_class()

    @classmethod
    def register_channel(cls, channel_type: str, channel_class: type):
        """
        Register a new notification channel.

        Args:
            channel_type: Type identifier for the channel
            channel_class: Class implementing NotificationChannel
        """
        if not issubclass(channel_class, NotificationChannel):
            raise ValueError("Channel class must extend NotificationChannel")

        cls._channels[channel_type.lower()] = channel_class
        logger.info(f"Registered new channel type: {channel_type}")

    @classmethod
    def list_channels(cls) -> list:
        """List all available channel types."""
        return list(cls._channels.keys())
