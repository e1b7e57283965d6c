import contextlib
import logging
from typing import Callable, ContextManager, Optional

from sqlalchemy.orm import Session

from database.repository import MarketplaceRepository

logger = logging.getLogger(__name__)

UowFactory = Callable[[], ContextManager[MarketplaceRepository]]


@contextlib.contextmanager
def marketplace_uow(session_factory: Optional[Callable[[], Session]] = None):
    """Per-unit-of-work transaction scope.

    Yields a MarketplaceRepository bound to a fresh Session. Commits on
    success, rolls back on exception, always closes.

    Usage:
        with marketplace_uow() as repo:
            booking = repo.bookings.find_in_progress_started_before(now, 10)
            # perform operations...
        # commit happens automatically on successful exit
    """
    if session_factory is None:
        from database.database import SessionLocal
        session_factory = SessionLocal

    session = session_factory()
    try:
        repo = MarketplaceRepository(session)
        yield repo
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


def make_uow_factory(session_factory: Callable[[], Session]) -> UowFactory:
    """Bind a session factory so callers can open scopes with a bare `uow()`."""
    def factory():
        return marketplace_uow(session_factory)
    return factory
