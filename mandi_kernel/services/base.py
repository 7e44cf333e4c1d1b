"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for
    every service in the kernel layer, plus the tenant-scoped lookup and
    rejection helpers they share.  All concrete services receive a
    SQLAlchemy ``Session`` that they use via ``session.flush()`` -- never
    ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.

Invariants enforced:
    - Transaction boundaries: services flush within the caller's
      transaction and never commit or rollback themselves.  The caller
      (``session_scope()`` or the test harness) owns commit/rollback.
    - Tenant isolation: every lookup filters on ``business_id``; a row in
      another business is reported exactly like a missing row.
    - A lost update on a versioned row surfaces as OptimisticLockError,
      never as a raw StaleDataError.

Failure modes:
    - NotFoundError from ``_get_scoped``.
    - OptimisticLockError from ``_flush``.
"""

from abc import ABC
from typing import Any, Generic, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from mandi_kernel.db.base import Base
from mandi_kernel.domain.clock import Clock, SystemClock
from mandi_kernel.exceptions import (
    MandiKernelError,
    NotFoundError,
    OptimisticLockError,
)
from mandi_kernel.logging_config import get_logger

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT provide list/report queries -- those belong in
          ``mandi_kernel/selectors/``.
    """

    # Logger suffix under mandi_kernel.services
    log_name = "base"

    def __init__(self, session: Session, clock: Clock | None = None):
        """
        Initialize the service.

        Args:
            session: SQLAlchemy session for database operations.
            clock: Time source.  Defaults to SystemClock.
        """
        self.session = session
        self.clock = clock or SystemClock()
        self.logger = get_logger(f"services.{self.log_name}")

    def _get_scoped(
        self,
        model: type[ModelType],
        business_id: str,
        entity_id: UUID,
        *,
        lock: bool = False,
    ) -> ModelType:
        """
        Load one row of ``model`` inside the caller's business.

        With ``lock=True`` the row is read with ``SELECT ... FOR UPDATE``
        and refreshed from the database, so the caller mutates current
        values under the row lock.
        """
        stmt = select(model).where(
            model.id == entity_id,
            model.business_id == business_id,
        )
        if lock:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        row = self.session.execute(stmt).scalar_one_or_none()
        if row is None:
            raise NotFoundError(model.__name__, str(entity_id))
        return row

    def _flush(self, entity_type: str, entity_id: Any) -> None:
        """Flush pending changes, mapping a lost update to OptimisticLockError."""
        try:
            self.session.flush()
        except StaleDataError as exc:
            self.logger.warning(
                "optimistic_lock_conflict",
                extra={"entity_type": entity_type, "entity_id": str(entity_id)},
            )
            raise OptimisticLockError(entity_type, str(entity_id)) from exc

    def _rejected(
        self, event: str, error: MandiKernelError, **extra: Any
    ) -> MandiKernelError:
        """Log a business-rule rejection and hand the error back for raising."""
        self.logger.warning(
            event,
            extra={
                "error_code": error.code,
                "reason": str(error),
                **{k: str(v) if isinstance(v, UUID) else v for k, v in extra.items()},
            },
        )
        return error
