import json
import logging
from collections.abc import Iterator
from contextlib import contextmanager

from sqlalchemy import text
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session

from stockledger.core.errors import ResourceBusyError, StockLedgerError, StoreUnavailableError

logger = logging.getLogger("stockledger.ledger")

# lock_not_available, deadlock_detected
_BUSY_PGCODES = {"55P03", "40P01"}
_BUSY_MESSAGES = ("database is locked", "lock timeout", "could not obtain lock", "deadlock")


def is_lock_contention(exc: SQLAlchemyError) -> bool:
    orig = getattr(exc, "orig", None)
    pgcode = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if pgcode in _BUSY_PGCODES:
        return True
    message = str(orig or exc).lower()
    return any(marker in message for marker in _BUSY_MESSAGES)


def translate_store_error(exc: SQLAlchemyError) -> StockLedgerError:
    if isinstance(exc, DBAPIError) and is_lock_contention(exc):
        return ResourceBusyError("Timed out waiting for a lock on contended stock cells")
    return StoreUnavailableError(f"Stock store failure: {exc.__class__.__name__}")


def _apply_lock_timeout(db: Session, lock_timeout_ms: int | None) -> None:
    if not lock_timeout_ms:
        return
    if db.get_bind().dialect.name == "postgresql":
        # SET LOCAL does not accept bind parameters.
        db.execute(text(f"SET LOCAL lock_timeout = {int(lock_timeout_ms)}"))


@contextmanager
def unit_of_work(db: Session, *, lock_timeout_ms: int | None = None) -> Iterator[Session]:
    """All-or-nothing scope for ledger mutations.

    Commits when the block exits cleanly. Any exception rolls the whole
    transaction back, so cell updates and their movement records persist
    together or not at all. Store failures surface as ResourceBusyError or
    StoreUnavailableError; domain errors propagate unchanged.
    """
    try:
        _apply_lock_timeout(db, lock_timeout_ms)
        yield db
        db.commit()
    except StockLedgerError:
        db.rollback()
        raise
    except SQLAlchemyError as exc:
        db.rollback()
        error = translate_store_error(exc)
        logger.error(
            json.dumps(
                {
                    "event": "store.failure",
                    "code": error.code,
                    "error": exc.__class__.__name__,
                }
            )
        )
        raise error from exc
    except Exception:
        db.rollback()
        raise
