import yaml
import os
from datetime import timedelta
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field


class DatabaseConfig(BaseModel):
    url: str
    pool_pre_ping: bool = True


class NotificationConfig(BaseModel):
    """
    Dispatcher settings.

    Transport credentials (SMTP_*, SMS_*, FCM_*) stay in the environment
    and are read by the channels themselves.
    """
    brand_name: str = "LocalPro"
    base_url: str = "http://localhost:3000"  # Frontend base URL for links in notifications

    channel_timeout_seconds: float = 10.0  # Upper bound for one channel send

    bulk_send_timeout_seconds: float = 30.0
    bulk_workers: int = 10

    # Redis queue settings
    use_async_queue: bool = False  # Queue outbound channel sends on RQ
    redis_url: Optional[str] = None  # Override default Redis URL
    rate_limit_max_wait_seconds: int = 300


class SchedulerConfig(BaseModel):
    poll_seconds: float = 30.0
    max_concurrent_detectors: int = 4


# ============ Detector configs ============

class DetectorConfig(BaseModel):
    """Settings every detector carries."""
    enabled: bool = True
    schedule: str = "1h"  # "15m" / "2h" / "1d" / "90s" or a five-field cron expression
    dedup_hours: float = 24.0
    limit: int = 200
    notify_admins: bool = False

    def dedup_window(self) -> timedelta:
        return timedelta(hours=self.dedup_hours)


class BookingReminderConfig(DetectorConfig):
    schedule: str = "15m"
    lead_hours: List[float] = [24, 2]
    window_minutes: int = 15  # +- around now + lead
    dedup_hours: float = 3.0
    limit: int = 500


class BookingTransitionConfig(DetectorConfig):
    schedule: str = "1h"
    confirm_after_hours: float = 24.0
    cancel_after_hours: float = 48.0
    auto_complete: bool = True
    limit: int = 500


class ReviewRequestConfig(DetectorConfig):
    schedule: str = "0 10 * * *"
    min_days: int = 3
    max_days: int = 7
    dedup_hours: float = 168.0
    limit: int = 300


class BookingFollowupConfig(DetectorConfig):
    schedule: str = "30m"
    pending_hours: float = 2.0
    soon_hours: float = 24.0
    dedup_hours: float = 6.0


class BookingOverdueConfig(DetectorConfig):
    schedule: str = "30m"
    grace_minutes: int = 120
    lookback_hours: int = 72


class FinanceReminderConfig(DetectorConfig):
    schedule: str = "0 9 * * *"
    days_before: int = 3
    limit: int = 300


class RentalReminderConfig(DetectorConfig):
    schedule: str = "0 9 * * *"
    days_before: int = 1
    notify_owner: bool = False
    limit: int = 300


class SuppliesReorderConfig(DetectorConfig):
    schedule: str = "0 10 * * *"
    reorder_after_days: int = 30
    dedup_hours: float = 336.0


class AbandonedPaymentConfig(DetectorConfig):
    schedule: str = "2h"
    min_age_minutes: int = 60
    max_age_days: int = 7


class OrderSlaConfig(DetectorConfig):
    schedule: str = "1h"
    sla_days: int = 3


class LateDeliveryConfig(DetectorConfig):
    schedule: str = "6h"
    late_days: int = 7


class DeliveryConfirmationConfig(DetectorConfig):
    schedule: str = "6h"
    stale_days: int = 14
    limit: int = 300


class AutoDeliverConfig(DetectorConfig):
    schedule: str = "6h"
    after_days: int = 10


class JobApplicationFollowupConfig(DetectorConfig):
    schedule: str = "0 9 * * *"
    min_days: int = 3
    max_days: int = 14
    dedup_hours: float = 48.0


class JobDigestConfig(DetectorConfig):
    schedule: str = "0 8 * * 1"
    lookback_days: int = 7
    dedup_hours: float = 144.0
    limit: int = 1000  # Max recipients per run


class LiveChatSlaConfig(DetectorConfig):
    schedule: str = "5m"
    wait_minutes: int = 10
    lookback_hours: int = 24
    dedup_hours: float = 1.0
    notify_admins: bool = True


class MessagingNudgeConfig(DetectorConfig):
    schedule: str = "30m"
    min_age_minutes: int = 60
    lookback_hours: int = 72
    dedup_hours: float = 6.0
    limit: int = 200  # Conversations scanned
    max_notifications: int = 500
    preview_length: int = 80


class MessageModerationConfig(DetectorConfig):
    schedule: str = "15m"
    lookback_minutes: int = 15
    limit: int = 500
    warn_sender: bool = True
    notify_admins: bool = True


class ReferralTierConfig(DetectorConfig):
    schedule: str = "1h"
    lookback_hours: int = 24
    tiers: List[str] = ["silver", "gold", "platinum"]
    dedup_hours: float = 720.0


class SubscriptionDunningConfig(DetectorConfig):
    schedule: str = "0 9 * * *"
    reminder_days: List[int] = [1, 3, 7]
    statuses: List[str] = ["past_due", "suspended", "expired"]
    dedup_hours: float = 48.0


class SubscriptionExpiringConfig(DetectorConfig):
    schedule: str = "0 9 * * *"
    days_before: int = 3
    dedup_hours: float = 168.0


class CertificatePendingConfig(DetectorConfig):
    schedule: str = "6h"
    min_hours: int = 24
    max_days: int = 30
    notify_admins: bool = True


class AcademyEngagementConfig(DetectorConfig):
    schedule: str = "0 11 * * *"
    not_started_days: int = 3
    stalled_days: int = 5
    dedup_hours: float = 72.0
    limit: int = 300


class EscrowDisputeConfig(DetectorConfig):
    schedule: str = "2h"
    unresolved_days: int = 3
    evidence_hours: int = 6
    notify_admins: bool = True


class DetectorsConfig(BaseModel):
    booking_reminder: BookingReminderConfig = Field(default_factory=BookingReminderConfig)
    booking_transitions: BookingTransitionConfig = Field(default_factory=BookingTransitionConfig)
    review_request: ReviewRequestConfig = Field(default_factory=ReviewRequestConfig)
    booking_followup: BookingFollowupConfig = Field(default_factory=BookingFollowupConfig)
    booking_overdue: BookingOverdueConfig = Field(default_factory=BookingOverdueConfig)
    finance_due_soon: FinanceReminderConfig = Field(default_factory=FinanceReminderConfig)
    finance_overdue: FinanceReminderConfig = Field(default_factory=FinanceReminderConfig)
    rental_due_soon: RentalReminderConfig = Field(default_factory=RentalReminderConfig)
    rental_overdue: RentalReminderConfig = Field(default_factory=RentalReminderConfig)
    supplies_reorder: SuppliesReorderConfig = Field(default_factory=SuppliesReorderConfig)
    order_abandoned_payment: AbandonedPaymentConfig = Field(default_factory=AbandonedPaymentConfig)
    order_processing_sla: OrderSlaConfig = Field(default_factory=OrderSlaConfig)
    order_late_delivery: LateDeliveryConfig = Field(default_factory=LateDeliveryConfig)
    order_delivery_confirmation: DeliveryConfirmationConfig = Field(default_factory=DeliveryConfirmationConfig)
    order_auto_deliver: AutoDeliverConfig = Field(default_factory=AutoDeliverConfig)
    job_application_followup: JobApplicationFollowupConfig = Field(default_factory=JobApplicationFollowupConfig)
    job_digest: JobDigestConfig = Field(default_factory=JobDigestConfig)
    livechat_sla: LiveChatSlaConfig = Field(default_factory=LiveChatSlaConfig)
    messaging_nudge: MessagingNudgeConfig = Field(default_factory=MessagingNudgeConfig)
    message_moderation: MessageModerationConfig = Field(default_factory=MessageModerationConfig)
    referral_tier: ReferralTierConfig = Field(default_factory=ReferralTierConfig)
    subscription_dunning: SubscriptionDunningConfig = Field(default_factory=SubscriptionDunningConfig)
    subscription_expiring: SubscriptionExpiringConfig = Field(default_factory=SubscriptionExpiringConfig)
    academy_certificate: CertificatePendingConfig = Field(default_factory=CertificatePendingConfig)
    academy_engagement: AcademyEngagementConfig = Field(default_factory=AcademyEngagementConfig)
    escrow_dispute: EscrowDisputeConfig = Field(default_factory=EscrowDisputeConfig)

    def get(self, name: str) -> DetectorConfig:
        if name not in type(self).model_fields:
            raise KeyError(f"Unknown detector: {name}")
        return getattr(self, name)


class AppConfig(BaseModel):
    database: DatabaseConfig
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    detectors: DetectorsConfig = Field(default_factory=DetectorsConfig)


def _apply_detectors_enabled(data: Dict[str, Any], value: str) -> None:
    """DETECTORS_ENABLED=all or a comma list of detector names to force-enable."""
    names = [n.strip() for n in value.split(',') if n.strip()]
    if not names:
        return
    if names == ['all']:
        names = list(DetectorsConfig.model_fields.keys())

    detectors = data.setdefault('detectors', {}) or {}
    data['detectors'] = detectors
    for name in names:
        if name not in DetectorsConfig.model_fields:
            raise ValueError(f"DETECTORS_ENABLED names unknown detector: {name}")
        section = detectors.get(name) or {}
        section['enabled'] = True
        detectors[name] = section


def load_config(config_path: str = "config.yaml") -> AppConfig:
    # If not found at relative path (e.g. running from root), try absolute or adjusted path
    if not os.path.exists(config_path):
        # Specific fallback for Docker where WORKDIR is /app and config is in /app/config.yaml
        base_dir = os.path.dirname(os.path.abspath(__file__))
        config_path = os.path.join(base_dir, "..", "config.yaml")

    with open(config_path, "r") as f:
        data = yaml.safe_load(f) or {}

    # Allow env var override for DB URL
    env_db_url = os.environ.get("DATABASE_URL")
    if env_db_url:
        if not data.get('database'):
            data['database'] = {}
        data['database']['url'] = env_db_url

    # Allow env var override for Redis URL
    env_redis_url = os.environ.get("REDIS_URL")
    if env_redis_url:
        if not data.get('notifications'):
            data['notifications'] = {}
        data['notifications']['redis_url'] = env_redis_url

    env_enabled = os.environ.get("DETECTORS_ENABLED")
    if env_enabled:
        _apply_detectors_enabled(data, env_enabled)

    return AppConfig(**data)
