import json
import logging
import signal
import sys
import threading
import argparse

from core.app_context import AppContext
from core.config_loader import load_config
from database.database import build_engine, build_session_factory
from database.init_db import init_db

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Set by SIGINT/SIGTERM for graceful shutdown
stop_event = threading.Event()


def signal_handler(sig, frame):
    logger.info("Shutdown signal received")
    stop_event.set()


def list_detectors(context: AppContext) -> None:
    for entry in context.scheduler.list_detectors():
        state = "enabled" if entry['enabled'] else "disabled"
        print(f"{entry['name']:<30} {state:<9} {entry['schedule']:<14} next: {entry['next_run']}")


def run_once(context: AppContext, name: str) -> int:
    try:
        result = context.scheduler.run_detector(name)
    except KeyError:
        logger.error(f"Unknown detector: {name}")
        return 2

    if result is None:
        return 1
    print(json.dumps(result.to_dict(), indent=2))
    return 1 if result.error else 0


def main():
    parser = argparse.ArgumentParser(description="Marketplace notification detectors")
    parser.add_argument('--config', type=str, default='config.yaml',
                        help='Path to the YAML configuration file')
    parser.add_argument('--once', type=str, metavar='DETECTOR',
                        help='Run a single detector immediately and print its result')
    parser.add_argument('--list', action='store_true',
                        help='List registered detectors and exit')
    args = parser.parse_args()

    config = load_config(args.config)
    engine = build_engine(config.database.url, pool_pre_ping=config.database.pool_pre_ping)
    context = AppContext.build(config, session_factory=build_session_factory(engine))

    try:
        if args.list:
            list_detectors(context)
            return 0

        # Initialize DB (with retry logic)
        init_db(engine)

        if args.once:
            return run_once(context, args.once)

        signal.signal(signal.SIGINT, signal_handler)
        signal.signal(signal.SIGTERM, signal_handler)

        logger.info(f"Scheduler starting with {len(context.detectors)} detector(s)...")
        context.scheduler.run_forever(stop_event)
        return 0
    finally:
        context.close()


if __name__ == "__main__":
    sys.exit(main())
