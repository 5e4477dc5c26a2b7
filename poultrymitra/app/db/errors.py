"""
Translation of SQLAlchemy failures into application errors.
"""

import logging
from contextlib import contextmanager

from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    InterfaceError,
    OperationalError,
)
from sqlalchemy.orm.exc import StaleDataError

from poultrymitra.app.core.exceptions import StorageUnavailableError, TransactionConflictError

logger = logging.getLogger("poultrymitra.db")

# SQLite reports writer contention as an OperationalError
_CONTENTION_MARKERS = ("database is locked", "database table is locked", "could not serialize", "deadlock detected")


def is_contention(exc: DBAPIError) -> bool:
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return any(marker in message for marker in _CONTENTION_MARKERS)


@contextmanager
def translate_db_errors(operation: str):
    """
    Re-raise database failures as TransactionConflictError or StorageUnavailableError.

    Usage:
        with translate_db_errors("ledger.append"):
            await session.commit()
    """
    try:
        yield
    except StaleDataError as e:
        raise TransactionConflictError(details={"operation": operation}) from e
    except IntegrityError as e:
        logger.info("Integrity conflict during %s", operation)
        raise TransactionConflictError(details={"operation": operation}) from e
    except (OperationalError, InterfaceError) as e:
        if is_contention(e):
            raise TransactionConflictError(details={"operation": operation}) from e
        logger.error("Storage failure during %s: %s", operation, e.orig)
        raise StorageUnavailableError() from e
    except DBAPIError as e:
        if e.connection_invalidated:
            raise StorageUnavailableError() from e
        if is_contention(e):
            raise TransactionConflictError(details={"operation": operation}) from e
        raise
    except (ConnectionError, OSError) as e:
        logger.error("Storage unreachable during %s: %s", operation, e)
        raise StorageUnavailableError() from e
