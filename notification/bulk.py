"""Fan one notification out to many users."""

import logging
import math
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Union

from notification.dispatcher import Dispatcher
from notification.types import NotificationPriority, NotificationType, type_value

logger = logging.getLogger(__name__)


@dataclass
class BulkItemResult:
    user_id: str
    success: bool
    error: Optional[str] = None
    notification_id: Optional[str] = None


@dataclass
class BulkDispatchResult:
    total: int = 0
    success_count: int = 0
    failed_count: int = 0
    results: List[BulkItemResult] = field(default_factory=list)


class BulkDispatcher:
    """
    Calls Dispatcher.send once per user on a bounded pool and joins all of
    them. `results` keeps input order; a failure for one user (missing
    account, exception, timeout) is recorded and the batch carries on.
    """

    def __init__(self, dispatcher: Dispatcher, max_workers: int = 10, send_timeout_seconds: float = 30.0):
        self.dispatcher = dispatcher
        self.max_workers = max_workers
        self.send_timeout_seconds = send_timeout_seconds

    def send_bulk(
        self,
        user_ids: Sequence[Any],
        notification_type: Union[NotificationType, str],
        title: str,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        priority: Optional[Union[NotificationPriority, str]] = None,
    ) -> BulkDispatchResult:
        user_ids = list(user_ids or [])
        if not user_ids:
            return BulkDispatchResult()

        type_name = type_value(notification_type)
        workers = max(1, min(self.max_workers, len(user_ids)))
        # Every wave of `workers` sends gets the per-send budget
        deadline = self.send_timeout_seconds * math.ceil(len(user_ids) / workers)

        results: List[BulkItemResult] = []
        executor = ThreadPoolExecutor(max_workers=workers, thread_name_prefix='notify-bulk')
        try:
            futures = [
                executor.submit(
                    self.dispatcher.send,
                    user_id=user_id,
                    notification_type=type_name,
                    title=title,
                    message=message,
                    data=data,
                    priority=priority,
                )
                for user_id in user_ids
            ]
            wait(futures, timeout=deadline)

            for user_id, future in zip(user_ids, futures):
                if not future.done():
                    future.cancel()
                    results.append(BulkItemResult(str(user_id), False, error="Timed out"))
                    continue
                try:
                    outcome = future.result()
                except Exception as e:
                    logger.error(f"Bulk {type_name} send to {user_id} raised: {e}")
                    results.append(BulkItemResult(str(user_id), False, error=str(e)))
                    continue

                notification_id = outcome.notification['id'] if outcome.notification else None
                results.append(BulkItemResult(str(user_id), outcome.success, outcome.error, notification_id))
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        success_count = sum(1 for r in results if r.success)
        logger.info(f"Bulk {type_name}: {success_count}/{len(results)} succeeded")
        return BulkDispatchResult(
            total=len(results),
            success_count=success_count,
            failed_count=len(results) - success_count,
            results=results,
        )
