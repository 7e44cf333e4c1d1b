"""
Module: mandi_kernel.selectors.base
Responsibility: Abstract base class for all read-only query selectors.
    Selectors are the read side: lot lists, ledgers, dues and cash balances,
    all derived from rows at query time.
Architecture position: Kernel > Selectors.  May import from db/, models/ and
    the pure DTOs in domain/.  MUST NOT import from services/ or outer layers.

Invariants enforced:
    - Read-only access: selectors never call session.add(), delete(),
      commit() or flush().
    - DTO return convention: selectors return frozen dataclasses, never ORM
      instances.
    - Tenant isolation: every query filters on business_id.

Failure modes:
    - NotFoundError from ``_get_scoped`` for a row outside the business.
"""

from abc import ABC
from decimal import Decimal
from typing import Generic, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from mandi_kernel.db.base import Base
from mandi_kernel.db.types import round_money, to_decimal
from mandi_kernel.exceptions import NotFoundError

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only queries,
        and return DTOs or computed results.  They MUST NOT mutate any data.
    """

    def __init__(self, session: Session):
        self.session = session

    def _get_scoped(
        self, model: type[ModelType], business_id: str, entity_id: UUID
    ) -> ModelType:
        row = self.session.execute(
            select(model).where(model.id == entity_id, model.business_id == business_id)
        ).scalar_one_or_none()
        if row is None:
            raise NotFoundError(model.__name__, str(entity_id))
        return row


def money(value: Decimal | int | float | None) -> Decimal:
    """Normalise an aggregate result (None when no rows) to two-decimal money."""
    return round_money(to_decimal(value or 0))
