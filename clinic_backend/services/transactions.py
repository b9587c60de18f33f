import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinic_backend.core.errors import InfrastructureError, SchedulingError, SlotConflictError

logger = logging.getLogger(__name__)

SLOT_TAKEN_MESSAGE = 'Time slot conflict. The selected time was just booked by someone else.'
RELOAD_FAILED_MESSAGE = 'The change was saved but could not be reloaded. Please refresh.'


@contextmanager
def store_transaction(db: Session, failure_message: str) -> Iterator[Session]:
    """Run a unit of work and commit it, or roll all of it back.

    Business-rule failures propagate unchanged. An integrity error is the
    storage backstop for a double booking. Any other store error becomes a
    retryable ``InfrastructureError``.
    """
    try:
        yield db
        db.commit()
    except SchedulingError:
        db.rollback()
        raise
    except IntegrityError as exc:
        db.rollback()
        logger.info('Integrity violation on commit: %s', exc.orig)
        raise SlotConflictError(SLOT_TAKEN_MESSAGE) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Store operation failed')
        raise InfrastructureError(failure_message) from exc


def refresh_committed(db: Session, instance) -> None:
    """Reload a row after its transaction committed.

    The change is already stored. A failure here only ends the read
    transaction and is reported as a retryable store error.
    """
    try:
        db.refresh(instance)
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception('Reload after commit failed')
        raise InfrastructureError(RELOAD_FAILED_MESSAGE) from exc
