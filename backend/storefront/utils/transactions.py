from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.session import SessionTransactionOrigin

from storefront.errors import Conflict, StorageError
from storefront.utils.logging import get_logger

log = get_logger(__name__)


def _has_pending_changes(session: Session) -> bool:
    return bool(session.new or session.dirty or session.deleted)


def close_idle_transaction(session: Session) -> bool:
    """
    Commit a transaction the session began on its own for reads only.

    Returns True when nothing is left open, False when the caller holds an
    explicit transaction or unflushed changes that must not be touched.
    """
    tx = session.get_transaction()
    if tx is None:
        return True
    if tx.origin is SessionTransactionOrigin.AUTOBEGIN and not _has_pending_changes(
        session
    ):
        session.commit()
        return True
    return False


@contextmanager
def smart_transaction(session: Session) -> Iterator[Session]:
    """
    Run the block in a transaction on `session`, committing on success and
    rolling back on any exception.

    A transaction the caller opened explicitly (or one holding unflushed
    changes) is kept, and the block runs in a nested SAVEPOINT inside it.
    A read-only transaction left behind by an earlier query is closed first so
    the block owns, and commits, a fresh one.

    Database failures surface as StorageError (Conflict for integrity
    violations); the original exception is logged and chained.
    Usage:
        with smart_transaction(db):
            ... DB work ...
    """
    cm = session.begin() if close_idle_transaction(session) else session.begin_nested()
    try:
        with cm:
            yield session
    except IntegrityError as e:
        log.warning("integrity violation: %s", e.orig)
        raise Conflict("Conflicting update, please retry") from e
    except SQLAlchemyError as e:
        log.exception("transaction failed")
        raise StorageError() from e
