"""Session helpers shared by the ticket and attachment services."""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import BackendFailure

logger = logging.getLogger(__name__)


@contextmanager
def backend_errors(session: Session, action: str) -> Iterator[None]:
    """Roll back and re-raise database errors as :class:`BackendFailure`."""

    try:
        yield
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Database error while trying to %s", action)
        raise BackendFailure(f"Unable to {action}") from exc


def commit(session: Session, action: str) -> None:
    with backend_errors(session, action):
        session.commit()
