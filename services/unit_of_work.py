# services/unit_of_work.py
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from services.errors import AppError, DatabaseError

logger = logging.getLogger(__name__)


@contextmanager
def unit_of_work(db: Session) -> Iterator[Session]:
    """
    All-or-nothing boundary for multi-row writes.

    Everything flushed inside the block commits together; any exception
    rolls the whole block back before propagating. Storage failures are
    re-raised as `DatabaseError` so the request fails as a whole.
    """
    try:
        yield db
        db.commit()
    except AppError:
        db.rollback()
        raise
    except SQLAlchemyError as e:
        db.rollback()
        logger.exception("unit of work aborted: %s", type(e).__name__)
        raise DatabaseError() from e
    except BaseException:
        db.rollback()
        raise
