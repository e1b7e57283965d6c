from dataclasses import dataclass, field
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from core.config_loader import AppConfig, NotificationConfig
from database.uow import UowFactory, make_uow_factory
from detectors.base import Detector
from detectors.registry import build_detectors
from notification.bulk import BulkDispatcher
from notification.dispatcher import Dispatcher
from notification.message_builder import NotificationMessageBuilder
from notification.preferences import PreferenceStore
from notification.service import NotificationService
from notification.tracker import NotificationTrackerService
from scheduler.clock import Clock, SystemClock
from scheduler.scheduler import Scheduler


@dataclass
class AppContext:
    """Application context container that holds all wired dependencies.

    The only process-wide state is the session factory; everything else
    receives it as a unit-of-work factory. DB access should be obtained
    via uow_factory() inside each unit of work.
    """
    config: AppConfig
    clock: Clock
    uow_factory: UowFactory
    dispatcher: Dispatcher
    bulk_dispatcher: BulkDispatcher
    notification_service: NotificationService
    tracker: NotificationTrackerService
    scheduler: Scheduler
    detectors: List[Detector] = field(default_factory=list)

    @classmethod
    def build(
        cls,
        config: AppConfig,
        session_factory: Optional[Callable[[], Session]] = None,
        clock: Optional[Clock] = None,
    ) -> "AppContext":
        """Build an AppContext from config.

        Args:
            config: Loaded application configuration
            session_factory: Session factory to bind units of work to;
                defaults to one built from config.database
            clock: Time source shared by dispatcher, detectors and scheduler

        Returns:
            Fully wired AppContext instance with every detector registered
        """
        clock = clock or SystemClock()
        if session_factory is None:
            session_factory = cls._build_session_factory(config)
        uow_factory = make_uow_factory(session_factory)

        dispatcher = cls._build_dispatcher(config.notifications, uow_factory, clock)
        bulk_dispatcher = BulkDispatcher(
            dispatcher,
            max_workers=config.notifications.bulk_workers,
            send_timeout_seconds=config.notifications.bulk_send_timeout_seconds,
        )
        notification_service = NotificationService(dispatcher, bulk_dispatcher)
        tracker = NotificationTrackerService(uow_factory, clock=clock)

        detectors = build_detectors(config.detectors, dispatcher, tracker, uow_factory, clock)
        scheduler = cls._build_scheduler(config, clock, detectors)

        return cls(
            config=config,
            clock=clock,
            uow_factory=uow_factory,
            dispatcher=dispatcher,
            bulk_dispatcher=bulk_dispatcher,
            notification_service=notification_service,
            tracker=tracker,
            scheduler=scheduler,
            detectors=detectors,
        )

    def close(self) -> None:
        self.scheduler.shutdown(wait=False)
        self.dispatcher.close()

    @staticmethod
    def _build_session_factory(config: AppConfig) -> Callable[[], Session]:
        from database.database import build_engine, build_session_factory

        engine = build_engine(config.database.url, pool_pre_ping=config.database.pool_pre_ping)
        return build_session_factory(engine)

    @staticmethod
    def _build_dispatcher(
        notification_config: NotificationConfig,
        uow_factory: UowFactory,
        clock: Clock,
    ) -> Dispatcher:
        """Build the dispatcher, queueing outbound sends on RQ when enabled."""
        redis_kwargs = {}
        if notification_config.redis_url:
            redis_kwargs['redis_url'] = notification_config.redis_url

        return Dispatcher(
            uow_factory,
            clock=clock,
            message_builder=NotificationMessageBuilder(
                brand_name=notification_config.brand_name,
                base_url=notification_config.base_url,
            ),
            preference_store=PreferenceStore(uow_factory),
            channel_timeout_seconds=notification_config.channel_timeout_seconds,
            use_async_queue=notification_config.use_async_queue,
            **redis_kwargs
        )

    @staticmethod
    def _build_scheduler(config: AppConfig, clock: Clock, detectors: List[Detector]) -> Scheduler:
        scheduler = Scheduler(
            clock,
            max_workers=config.scheduler.max_concurrent_detectors,
            poll_seconds=config.scheduler.poll_seconds,
        )
        for detector in detectors:
            scheduler.register(detector)
        return scheduler
