"""
Shared helpers for module services.

Used by erp_modules/*/service.py so that every public mutating method owns
its transaction boundary the same way (commit on success, rollback on any
exception) and every public read reports database trouble the same way as
a write: connectivity failures surface as ``StorageUnavailableError`` and
PostgreSQL deadlock or serialization aborts as ``OptimisticLockError``.

Architecture: Modules layer. Imports only from erp_kernel.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from erp_kernel.db.engine import translate_dbapi_error
from erp_kernel.exceptions import DuplicateReferenceError, OptimisticLockError
from erp_kernel.logging_config import get_logger

logger = get_logger("modules.service_helpers")


def _raise_translated(exc: DBAPIError, operation: str) -> None:
    translated = translate_dbapi_error(exc, operation)
    if translated is None:
        return
    logger.error(translated.code.lower(), extra={
        "operation": operation,
        "error": str(exc.orig),
    })
    raise translated from exc


@contextmanager
def owned_transaction(session: Session, operation: str) -> Iterator[Session]:
    """Run the block as one transaction: commit on success, rollback otherwise."""
    try:
        yield session
        session.commit()
    except DBAPIError as exc:
        session.rollback()
        _raise_translated(exc, operation)
        raise
    except Exception:
        session.rollback()
        raise


@contextmanager
def read_scope(session: Session, operation: str) -> Iterator[Session]:
    """
    Run a read.  Never commits; on a database error the session is rolled
    back so it can be reused, and the error is translated like a write's.
    """
    try:
        yield session
    except DBAPIError as exc:
        session.rollback()
        _raise_translated(exc, operation)
        raise


def flush_document(session: Session, document_type: str, reference: str) -> None:
    """
    Flush a newly added document header.

    A unique-constraint race on the reference (two writers passing the
    pre-check at once) is reported as DuplicateReferenceError rather than
    a raw IntegrityError.
    """
    try:
        session.flush()
    except IntegrityError as exc:
        logger.info("duplicate_reference_rejected", extra={
            "document_type": document_type,
            "reference": reference,
        })
        raise DuplicateReferenceError(document_type, reference) from exc


def flush_versioned(session: Session, entity_type: str, entity_id: object) -> None:
    """Flush a change to a versioned row, reporting a version race as OptimisticLockError."""
    try:
        session.flush()
    except StaleDataError:
        logger.warning("optimistic_lock_conflict", extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
        })
        raise OptimisticLockError(entity_type, str(entity_id)) from None
