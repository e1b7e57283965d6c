import uuid
from typing import Any, Optional

from sqlalchemy import update
from sqlalchemy.orm import Session


def as_uuid(value: Any) -> Optional[uuid.UUID]:
    """Coerce an id to UUID; returns None for values that cannot be one."""
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, AttributeError, TypeError):
        return None


class BaseRepository:
    def __init__(self, db: Session):
        self.db = db

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    def _guarded_update(self, model, entity_id: Any, expected_status: str, **values) -> bool:
        """
        Apply UPDATE ... WHERE id = :id AND status = :expected.

        Returns True only when exactly one row changed, i.e. the row was
        still in `expected_status` when the write landed.
        """
        stmt = (
            update(model)
            .where(model.id == as_uuid(entity_id), model.status == expected_status)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        return result.rowcount == 1
