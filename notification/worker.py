#!/usr/bin/env python3
"""
RQ Worker for queued channel deliveries.

When the dispatcher runs with `use_async_queue`, each outbound channel
send becomes one job on the `notifications` queue. The in-app record is
already persisted by then; jobs only talk to transports.

Usage:
    python -m notification.worker
    python -m notification.worker --burst
    python -m notification.worker --verbose
"""

import os
import sys
import time
import argparse
import logging
from typing import Any, Dict, Optional

from redis import Redis
from rq import Worker

from notification.channels import NotificationChannelFactory
from notification.errors import RateLimitException

logger = logging.getLogger(__name__)


class NotificationRateLimiter:
    """
    Rate limiter using Redis to coordinate across workers.

    When any worker hits a rate limit, it stores the "wait until" timestamp.
    All other workers check this and wait before attempting to send.
    """

    RATE_LIMIT_PREFIX = "notification:rate_limit:"

    def __init__(self, redis_url: str = 'redis://localhost:6379/0', max_wait_seconds: int = 300):
        self.redis_url = redis_url
        self.max_wait_seconds = max_wait_seconds
        self._redis = None

    def _get_redis(self) -> Optional[Redis]:
        if self._redis is None:
            try:
                self._redis = Redis.from_url(self.redis_url)
            except Exception as e:
                logger.warning(f"Rate limiter cannot reach Redis: {e}")
        return self._redis

    def set_rate_limit(self, channel_type: str, retry_after: int) -> None:
        redis = self._get_redis()
        if redis:
            key = f"{self.RATE_LIMIT_PREFIX}{channel_type}"
            wait_until = time.time() + retry_after
            redis.setex(key, retry_after + 5, str(wait_until))

    def get_wait_time(self, channel_type: str) -> float:
        """Seconds to wait before sending (0 if no limit), capped at max_wait_seconds."""
        redis = self._get_redis()
        if not redis:
            return 0

        wait_until = redis.get(f"{self.RATE_LIMIT_PREFIX}{channel_type}")
        if wait_until:
            try:
                wait_time = float(wait_until) - time.time()
                return min(max(0, wait_time), self.max_wait_seconds)
            except (ValueError, TypeError):
                return 0
        return 0


# Worker task - must be at module level for RQ
def deliver_channel_task(job_data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Deliver one channel send (called by RQ worker).

    Honors the shared rate limit before sending and publishes a new one
    when a transport answers 429. Raising makes RQ apply the job's Retry
    policy.
    """
    channel_type = job_data['channel_type']
    recipients = job_data.get('recipients') or []
    subject = job_data['subject']
    body = job_data['body']
    metadata = job_data.get('metadata') or {}

    redis_url = os.environ.get('REDIS_URL', 'redis://localhost:6379/0')
    max_wait_seconds = int(os.environ.get('NOTIFICATION_RATE_LIMIT_MAX_WAIT', '300'))
    rate_limiter = NotificationRateLimiter(redis_url, max_wait_seconds)

    wait_time = rate_limiter.get_wait_time(channel_type)
    if wait_time > 0:
        logger.info(f"Global rate limit active for {channel_type}. Waiting {wait_time:.1f}s...")
        time.sleep(wait_time)

    channel = NotificationChannelFactory.get_channel(channel_type)
    delivered = 0
    for recipient in recipients:
        try:
            if channel.send(recipient, subject, body, metadata):
                delivered += 1
        except RateLimitException as e:
            retry_after = min(e.retry_after or 60, max_wait_seconds)
            rate_limiter.set_rate_limit(channel_type, retry_after)
            logger.warning(f"Rate limited by {channel_type}; shared wait set to {retry_after}s")
            raise

    if recipients and delivered == 0:
        raise RuntimeError(f"{channel_type} delivery failed for all {len(recipients)} recipient(s)")

    logger.info(f"{channel_type} delivered to {delivered}/{len(recipients)} recipient(s)")
    return {'channel_type': channel_type, 'delivered': delivered}


def start_worker(burst: bool = False, queues: list = None):
    """Start the RQ worker."""
    redis_url = os.environ.get('REDIS_URL', 'redis://localhost:6379/0')

    if queues is None:
        queues = ['notifications']

    logger.info(f"Starting RQ Worker on queues: {', '.join(queues)} (burst={burst})")

    try:
        redis_conn = Redis.from_url(redis_url)
        redis_conn.ping()
        logger.info("Connected to Redis")

        worker = Worker(queues, connection=redis_conn)
        worker.work(burst=burst)

    except KeyboardInterrupt:
        logger.info("Worker stopped")
    except Exception as e:
        logger.error(f"Error: {e}")
        sys.exit(1)


def main():
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    parser = argparse.ArgumentParser(description='Marketplace Notification Worker')
    parser.add_argument('--burst', action='store_true', help='Process all and exit')
    parser.add_argument('--queues', nargs='+', default=['notifications'])
    parser.add_argument('--verbose', action='store_true')

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    start_worker(burst=args.burst, queues=args.queues)


if __name__ == '__main__':
    main()
