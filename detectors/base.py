"""
Detector framework.

A detector scans domain data on its own schedule and emits deduplicated
notifications through the Dispatcher. One run walks the states

    Idle -> Scanning -> (per candidate: DedupCheck -> Emit | Skip) -> Idle

and records where it is on its own DetectorRunResult, since the scheduler
may run two ticks of one detector at the same time.

Scanning happens in one unit of work and produces plain Candidate objects,
so no ORM instance outlives its session. Each candidate is then checked
against the notification log and sent in its own transactions.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Any, Callable, ContextManager, Dict, Iterable, List, Optional, Sequence, Tuple

from core.config_loader import DetectorConfig
from database.repository import MarketplaceRepository
from notification.dispatcher import Dispatcher
from notification.errors import DedupCheckFailure, DetectorQueryFailure
from notification.payloads import build_payload
from notification.tracker import DedupKey, NotificationTrackerService
from notification.types import FORCED_TYPES, NotificationPriority, NotificationType
from scheduler.clock import Clock, SystemClock
from scheduler.schedules import Schedule, parse_schedule

logger = logging.getLogger(__name__)

UowFactory = Callable[[], ContextManager[MarketplaceRepository]]


class DetectorState(Enum):
    IDLE = "idle"
    SCANNING = "scanning"
    DEDUP_CHECK = "dedup_check"
    EMIT = "emit"
    SKIP = "skip"


@dataclass
class Candidate:
    """One notification a detector wants to send."""
    user_id: str
    notification_type: NotificationType
    title: str
    message: str
    data: Dict[str, Any]
    dedup_fields: Tuple[str, ...] = ()
    priority: Optional[NotificationPriority] = None

    @property
    def force_channels(self) -> bool:
        return self.notification_type in FORCED_TYPES


@dataclass
class DetectorRunResult:
    detector: str
    started_at: datetime
    finished_at: Optional[datetime] = None
    scanned: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0
    error: Optional[str] = None
    disabled: bool = False
    transitioned: int = 0
    state: DetectorState = DetectorState.IDLE

    def to_dict(self) -> Dict[str, Any]:
        result = asdict(self)
        result['state'] = self.state.value
        result['started_at'] = self.started_at.isoformat()
        result['finished_at'] = self.finished_at.isoformat() if self.finished_at else None
        return result


class Detector(ABC):
    """
    Base class for notification detectors.

    Subclasses set `name` and implement `find_candidates`; everything
    else (disabled handling, query failure isolation, dedup, emission,
    counting) lives here.
    """

    name: str = ""

    def __init__(
        self,
        config: DetectorConfig,
        dispatcher: Dispatcher,
        tracker: NotificationTrackerService,
        uow_factory: UowFactory,
        clock: Optional[Clock] = None,
    ):
        self.config = config
        self.dispatcher = dispatcher
        self.tracker = tracker
        self.uow_factory = uow_factory
        self.clock = clock or SystemClock()
        self._schedule: Optional[Schedule] = None

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def schedule(self) -> Schedule:
        if self._schedule is None:
            self._schedule = parse_schedule(self.config.schedule)
        return self._schedule

    @property
    def max_sends(self) -> Optional[int]:
        """Cap on notifications actually sent per run; None for no cap."""
        return None

    @abstractmethod
    def find_candidates(self, repo: MarketplaceRepository, now: datetime) -> Iterable[Candidate]:
        """Query the domain store and build candidates. Runs inside one unit of work."""
        pass

    def run(self) -> DetectorRunResult:
        now = self.clock.now()
        result = DetectorRunResult(detector=self.name, started_at=now)

        if not self.enabled:
            result.disabled = True
            result.finished_at = self.clock.now()
            logger.debug(f"Detector {self.name} is disabled")
            return result

        result.state = DetectorState.SCANNING
        try:
            candidates = self._scan(now)
        except DetectorQueryFailure as failure:
            logger.error(str(failure))
            result.error = str(failure)
            return self._finish(result)

        result.scanned = len(candidates)
        limit = self.max_sends
        for candidate in candidates:
            if limit is not None and result.sent >= limit:
                logger.info(f"Detector {self.name}: reached max of {limit} sends")
                break
            self._process(candidate, result)

        return self._finish(result)

    # ============ Internals ============

    def _scan(self, now: datetime) -> List[Any]:
        try:
            with self.uow_factory() as repo:
                return list(self.find_candidates(repo, now))
        except Exception as e:
            raise DetectorQueryFailure(self.name, e) from e

    def _finish(self, result: DetectorRunResult) -> DetectorRunResult:
        result.state = DetectorState.IDLE
        result.finished_at = self.clock.now()
        logger.info(
            f"Detector {self.name}: scanned={result.scanned} sent={result.sent} "
            f"skipped={result.skipped} failed={result.failed}"
            + (f" transitioned={result.transitioned}" if result.transitioned else "")
            + (f" error={result.error}" if result.error else "")
        )
        return result

    def _process(self, candidate: Candidate, result: DetectorRunResult) -> None:
        try:
            data = build_payload(candidate.notification_type, candidate.data)
            key = DedupKey.build(
                candidate.user_id,
                candidate.notification_type,
                {f: data[f] for f in candidate.dedup_fields if f in data},
            )

            result.state = DetectorState.DEDUP_CHECK
            if not self.tracker.should_notify(key, self.config.dedup_window()):
                result.state = DetectorState.SKIP
                result.skipped += 1
                return

            self._emit(candidate, data, result)

        except DedupCheckFailure as e:
            logger.error(f"Detector {self.name}: {e}; skipping candidate")
            result.failed += 1
        except Exception as e:
            logger.error(
                f"Detector {self.name}: candidate {candidate.notification_type.value} "
                f"for {candidate.user_id} failed: {e}",
                exc_info=True,
            )
            result.failed += 1

    def _emit(self, candidate: Candidate, data: Dict[str, Any], result: DetectorRunResult) -> None:
        result.state = DetectorState.EMIT
        outcome = self.dispatcher.send(
            user_id=candidate.user_id,
            notification_type=candidate.notification_type,
            title=candidate.title,
            message=candidate.message,
            data=data,
            priority=candidate.priority,
            force_channels=candidate.force_channels,
        )
        if outcome.success:
            result.sent += 1
        else:
            logger.warning(f"Detector {self.name}: dispatch to {candidate.user_id} failed: {outcome.error}")
            result.failed += 1

    # ============ Helpers for subclasses ============

    def admin_ids(self, repo: MarketplaceRepository) -> List[str]:
        return [str(uid) for uid in repo.users.list_active_admin_ids()]

    @staticmethod
    def fan_out(
        user_ids: Sequence[Any],
        notification_type: NotificationType,
        title: str,
        message: str,
        data: Dict[str, Any],
        dedup_fields: Tuple[str, ...],
        priority: Optional[NotificationPriority] = None,
    ) -> List[Candidate]:
        """Same notification for several recipients (e.g. every admin)."""
        seen = set()
        candidates = []
        for uid in user_ids:
            if uid is None or str(uid) in seen:
                continue
            seen.add(str(uid))
            candidates.append(Candidate(
                user_id=str(uid),
                notification_type=notification_type,
                title=title,
                message=message,
                data=dict(data),
                dedup_fields=dedup_fields,
                priority=priority,
            ))
        return candidates


@dataclass
class Transition:
    """
    A guarded status change plus what to send once it lands.

    `apply` receives a fresh repository and returns True only when its
    conditional UPDATE changed exactly one row.
    """
    entity_id: str
    description: str
    apply: Callable[[MarketplaceRepository, datetime], bool]
    notifications: List[Candidate] = field(default_factory=list)


class TransitionDetector(Detector):
    """
    Detector that writes status back before notifying.

    Each transition runs in its own transaction; the notification goes out
    only if this run won the conditional write. A lost race counts as
    skipped. No dedup lookup is needed since the status guard already
    makes the write happen once.
    """

    @abstractmethod
    def find_transitions(self, repo: MarketplaceRepository, now: datetime) -> Iterable[Transition]:
        pass

    def find_candidates(self, repo: MarketplaceRepository, now: datetime) -> Iterable[Candidate]:
        return self.find_transitions(repo, now)

    def run(self) -> DetectorRunResult:
        now = self.clock.now()
        result = DetectorRunResult(detector=self.name, started_at=now)

        if not self.enabled:
            result.disabled = True
            result.finished_at = self.clock.now()
            return result

        result.state = DetectorState.SCANNING
        try:
            transitions = self._scan(now)
        except DetectorQueryFailure as failure:
            logger.error(str(failure))
            result.error = str(failure)
            return self._finish(result)

        result.scanned = len(transitions)
        for transition in transitions:
            try:
                with self.uow_factory() as repo:
                    changed = transition.apply(repo, now)
            except Exception as e:
                logger.error(f"Detector {self.name}: {transition.description} failed: {e}")
                result.failed += 1
                continue

            if not changed:
                logger.info(f"Detector {self.name}: {transition.description} lost the race; skipping")
                result.skipped += 1
                continue

            result.transitioned += 1
            for candidate in transition.notifications:
                try:
                    data = build_payload(candidate.notification_type, candidate.data)
                    self._emit(candidate, data, result)
                except Exception as e:
                    logger.error(f"Detector {self.name}: notify {candidate.user_id} failed: {e}")
                    result.failed += 1

        return self._finish(result)
