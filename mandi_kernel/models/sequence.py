"""
Module: mandi_kernel.models.sequence
Responsibility: Counter table behind every human-readable code (farmer and
    buyer codes, lot codes and serials, transaction and cash-flow codes).
Architecture position: Kernel > Models.  Written only by SequenceService.

Invariants enforced:
    - One row per (business_id, name).  The locked row is the sole source
      of the next value; no code is ever derived from count or max + 1.
"""

from sqlalchemy import BigInteger, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from mandi_kernel.db.base import Base


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row represents a named per-business sequence with its current
    value.  Row-level locking ensures monotonicity under concurrency.
    """

    __tablename__ = "sequence_counters"

    __table_args__ = (
        UniqueConstraint("business_id", "name", name="uq_sequence_counter"),
    )

    business_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
    )

    # Sequence key, e.g. "farmer", "lot:2024-01-15", "lot_serial:Potato:2024-01-15"
    name: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )

    def __repr__(self) -> str:
        return f"<SequenceCounter {self.business_id}/{self.name}={self.current_value}>"
