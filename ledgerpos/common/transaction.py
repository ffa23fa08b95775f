"""
Transaction coordinator.

Every mutating service call runs its writes inside ``atomic()``: the block
either commits as a whole or is rolled back before the error leaves the
service. Rolling back also expires every ORM object loaded in the session, so
stock quantities decremented in memory are re-read from the database on next
access.
"""
from contextlib import contextmanager
from typing import Iterator, Type
import logging

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

from ledgerpos.common.exceptions import ConflictError, UnexpectedError

logger = logging.getLogger(__name__)


@contextmanager
def atomic(db: Session, action: str) -> Iterator[Session]:
    """Run the enclosed writes as one unit of work.

    ``action`` is a short description ("creating invoice") used in logs and
    in the message of the 500 raised for unexpected failures.
    """
    try:
        yield db
        db.commit()
    except HTTPException as e:
        db.rollback()
        logger.info(f"Rolled back while {action}: {e.status_code} {e.detail}")
        raise
    except IntegrityError as e:
        db.rollback()
        logger.warning(f"Integrity error while {action}: {e.orig}")
        raise ConflictError(f"Conflict while {action}", [str(e.orig)])
    except Exception as e:
        db.rollback()
        logger.exception(f"Unexpected error while {action}")
        raise UnexpectedError(f"Error {action}", [str(e)])


def locking_query(db: Session, model: Type, pk) -> Query:
    """The ``SELECT ... FOR UPDATE`` query behind :func:`lock_for_update`."""
    return (
        db.query(model)
        .filter(model.id == pk)
        .populate_existing()
        .with_for_update()
    )


def lock_for_update(db: Session, model: Type, pk):
    """Load one row with an exclusive row lock (``SELECT ... FOR UPDATE``)."""
    return locking_query(db, model, pk).first()
