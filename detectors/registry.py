import logging
from typing import Dict, List, Optional, Type

from core.config_loader import DetectorsConfig
from detectors.academy import AcademyEngagementDetector, CertificatePendingDetector
from detectors.base import Detector, UowFactory
from detectors.bookings import (
    BookingFollowupDetector,
    BookingOverdueDetector,
    BookingReminderDetector,
    ReviewRequestDetector,
)
from detectors.escrow import EscrowDisputeDetector
from detectors.finance import FinanceDueSoonDetector, FinanceOverdueDetector
from detectors.jobs import JobApplicationFollowupDetector, JobDigestDetector
from detectors.membership import ReferralTierDetector, SubscriptionDunningDetector, SubscriptionExpiringDetector
from detectors.messaging import MessageModerationDetector, MessagingNudgeDetector
from detectors.orders import (
    AbandonedPaymentDetector,
    DeliveryConfirmationDetector,
    LateDeliveryDetector,
    OrderProcessingSlaDetector,
    SuppliesReorderDetector,
)
from detectors.rentals import RentalDueSoonDetector, RentalOverdueDetector
from detectors.support import LiveChatSlaDetector
from detectors.transitions import BookingTransitionDetector, OrderAutoDeliverDetector
from notification.dispatcher import Dispatcher
from notification.tracker import NotificationTrackerService
from scheduler.clock import Clock

logger = logging.getLogger(__name__)

_CLASSES: List[Type[Detector]] = [
    BookingReminderDetector,
    BookingTransitionDetector,
    ReviewRequestDetector,
    BookingFollowupDetector,
    BookingOverdueDetector,
    FinanceDueSoonDetector,
    FinanceOverdueDetector,
    RentalDueSoonDetector,
    RentalOverdueDetector,
    SuppliesReorderDetector,
    AbandonedPaymentDetector,
    OrderProcessingSlaDetector,
    LateDeliveryDetector,
    DeliveryConfirmationDetector,
    OrderAutoDeliverDetector,
    JobApplicationFollowupDetector,
    JobDigestDetector,
    LiveChatSlaDetector,
    MessagingNudgeDetector,
    MessageModerationDetector,
    ReferralTierDetector,
    SubscriptionDunningDetector,
    SubscriptionExpiringDetector,
    CertificatePendingDetector,
    AcademyEngagementDetector,
    EscrowDisputeDetector,
]

# Keyed by the detector's section name under `detectors:` in config.yaml
DETECTOR_CLASSES: Dict[str, Type[Detector]] = {cls.name: cls for cls in _CLASSES}

_unconfigured = [name for name in DETECTOR_CLASSES if name not in DetectorsConfig.model_fields]
if _unconfigured:
    raise RuntimeError(f"Detectors without a config section: {', '.join(_unconfigured)}")
del _unconfigured


def build_detectors(
    config: DetectorsConfig,
    dispatcher: Dispatcher,
    tracker: NotificationTrackerService,
    uow_factory: UowFactory,
    clock: Optional[Clock] = None,
) -> List[Detector]:
    """Instantiate every detector with its own config section. Disabled ones are included."""
    detectors = []
    for name, cls in DETECTOR_CLASSES.items():
        detectors.append(cls(config.get(name), dispatcher, tracker, uow_factory, clock))
    enabled = [d.name for d in detectors if d.enabled]
    logger.info(f"Built {len(detectors)} detectors ({len(enabled)} enabled)")
    return detectors
