import logging
from typing import Optional

from sqlalchemy import text
from sqlalchemy.engine import Engine
from tenacity import retry, stop_after_attempt, wait_fixed

from database.models import Base

logger = logging.getLogger(__name__)


@retry(stop=stop_after_attempt(5), wait=wait_fixed(2))
def init_db(bind: Optional[Engine] = None):
    """Wait for the database to answer, then create any missing tables."""
    if bind is None:
        from database.database import engine
        bind = engine

    logger.info("Initializing database...")
    try:
        with bind.connect() as connection:
            connection.execute(text("SELECT 1"))

        Base.metadata.create_all(bind=bind)
        logger.info("Tables created or verified.")

    except Exception as e:
        logger.error(f"Error initializing DB: {e}")
        raise


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    init_db()
