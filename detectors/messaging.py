"""
Messaging detectors.

The nudge reminds participants about a conversation's last message when
they have not read it. Moderation scans recent messages for contact
details shared in chat.
"""

import logging
import re
from datetime import datetime, timedelta
from typing import List

from database.models import Conversation, ensure_utc
from database.repository import MarketplaceRepository
from detectors.base import Candidate, Detector
from notification.types import NotificationType

logger = logging.getLogger(__name__)

EMAIL_PATTERN = re.compile(r'[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}', re.IGNORECASE)
PHONE_PATTERN = re.compile(r'(\+?\d[\d\s().-]{8,}\d)')


def contact_leak_reasons(content: str) -> List[str]:
    """Which kinds of contact detail `content` appears to contain."""
    if not content:
        return []
    reasons = []
    if EMAIL_PATTERN.search(content):
        reasons.append('email')
    if PHONE_PATTERN.search(content):
        reasons.append('phone')
    return reasons


class MessagingNudgeDetector(Detector):
    name = "messaging_nudge"

    @property
    def max_sends(self) -> int:
        return self.config.max_notifications

    def find_candidates(self, repo: MarketplaceRepository, now: datetime) -> List[Candidate]:
        conversations = repo.conversations.find_stale_unread(
            last_message_before=now - timedelta(minutes=self.config.min_age_minutes),
            last_message_after=now - timedelta(hours=self.config.lookback_hours),
            limit=self.config.limit,
        )

        candidates = []
        for conversation in conversations:
            candidates.extend(self._nudges(repo, conversation))
        return candidates

    def _nudges(self, repo: MarketplaceRepository, conversation: Conversation) -> List[Candidate]:
        last_message_at = ensure_utc(conversation.last_message_at)
        sender_id = conversation.last_message_sender_id
        unread_by = [
            p.user_id for p in conversation.participants
            if p.user_id != sender_id
            and (p.last_read_at is None or ensure_utc(p.last_read_at) < last_message_at)
        ]
        if not unread_by:
            return []

        sender_name = repo.users.get_display_name(sender_id)
        preview = (conversation.last_message_content or "")[:self.config.preview_length]
        data = {
            'conversation_id': conversation.id,
            'sender_id': sender_id,
            'sender_name': sender_name,
            'last_message_at': last_message_at,
        }
        return [
            Candidate(
                user_id=str(user_id),
                notification_type=NotificationType.MESSAGE_RECEIVED,
                title=f"Unread message from {sender_name}",
                message=preview or "You have an unread message",
                data=data,
                dedup_fields=('conversation_id', 'last_message_at'),
            )
            for user_id in unread_by
        ]


class MessageModerationDetector(Detector):
    """
    Flags recent messages that look like they share an email address or
    phone number. Admins get a review flag; the sender optionally gets a
    policy reminder.
    """

    name = "message_moderation"

    def find_candidates(self, repo: MarketplaceRepository, now: datetime) -> List[Candidate]:
        messages = repo.messages.find_created_since(
            now - timedelta(minutes=self.config.lookback_minutes), self.config.limit
        )
        flagged = [(m, contact_leak_reasons(m.content)) for m in messages]
        flagged = [(m, reasons) for m, reasons in flagged if reasons]
        if not flagged:
            return []

        admins = self.admin_ids(repo) if self.config.notify_admins else []

        candidates = []
        for message, reasons in flagged:
            candidates.extend(self.fan_out(
                admins,
                NotificationType.MESSAGE_MODERATION_FLAG,
                "Message flagged",
                "A message may contain contact details (email/phone). Review recommended.",
                {
                    'message_id': message.id,
                    'conversation_id': message.conversation_id,
                    'sender_id': message.sender_id,
                    'created_at': ensure_utc(message.created_at),
                    'reasons': reasons,
                },
                ('message_id',),
            ))
            if self.config.warn_sender:
                candidates.append(Candidate(
                    user_id=str(message.sender_id),
                    notification_type=NotificationType.MESSAGE_POLICY_WARNING,
                    title="Reminder: keep communication in-app",
                    message=(
                        "Please avoid sharing phone numbers/emails in chat. "
                        "Use in-app messaging for safety and support."
                    ),
                    data={'message_id': message.id, 'conversation_id': message.conversation_id},
                    dedup_fields=('message_id',),
                ))
        return candidates
