"""
Lot concurrency tests.

Two guards keep bag counts consistent when requests overlap:
- SELECT ... FOR UPDATE on the lot row before every bag mutation
  (PostgreSQL; SQLite has no row locks)
- the lot's version column, which turns a lost update into
  OptimisticLockError on every backend
"""

import threading
from concurrent.futures import ThreadPoolExecutor
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from mandi_kernel.domain.clock import DeterministicClock
from mandi_kernel.exceptions import InsufficientStockError, OptimisticLockError
from mandi_kernel.models.lot import Lot
from mandi_kernel.services import BidService, LotService, PartyService

pytestmark = pytest.mark.slow_locks


@pytest.fixture
def committed_lot(committing_engine, test_actor_id):
    """A committed 100-bag lot and a buyer, in a fresh business."""
    business_id = f"lock-{uuid4().hex[:8]}"
    clock = DeterministicClock()
    with Session(bind=committing_engine, expire_on_commit=False) as s:
        parties = PartyService(s, clock)
        farmer = parties.create_farmer(business_id, "Ramesh Patel", actor_id=test_actor_id)
        buyer = parties.create_buyer(business_id, "Shree Traders", actor_id=test_actor_id)
        lot = LotService(s, clock).create_lot(
            business_id, farmer.id, "Potato", 100, "Large", actor_id=test_actor_id
        )
        s.commit()
    return business_id, lot, buyer


def _load_lot(session: Session, lot_id) -> Lot:
    return session.execute(select(Lot).where(Lot.id == lot_id)).scalar_one()


class TestVersionCounter:

    def test_version_increments_on_each_bag_move(
        self, committing_engine, committed_lot, test_actor_id
    ):
        business_id, lot, buyer = committed_lot
        assert lot.version == 1

        with Session(bind=committing_engine) as s:
            BidService(s, DeterministicClock()).create_bid(
                business_id, lot.id, buyer.id, "20", 10, actor_id=test_actor_id
            )
            s.commit()
            assert _load_lot(s, lot.id).version == 2

    def test_stale_write_raises_optimistic_lock_error(
        self, committing_engine, committed_lot, test_actor_id
    ):
        business_id, lot, buyer = committed_lot

        stale_session = Session(bind=committing_engine, expire_on_commit=False)
        try:
            stale = _load_lot(stale_session, lot.id)
            stale_session.commit()

            with Session(bind=committing_engine) as other:
                BidService(other, DeterministicClock()).create_bid(
                    business_id, lot.id, buyer.id, "20", 30, actor_id=test_actor_id
                )
                other.commit()

            # Based on the version read before the bid: remaining 100 - 5
            stale.remaining_bags -= 5
            with pytest.raises(OptimisticLockError) as exc_info:
                LotService(stale_session, DeterministicClock())._flush("Lot", stale.id)
            assert exc_info.value.entity_id == str(lot.id)
            stale_session.rollback()
        finally:
            stale_session.close()

        with Session(bind=committing_engine) as check:
            assert _load_lot(check, lot.id).remaining_bags == 70

    def test_conflict_logged(
        self, committing_engine, committed_lot, test_actor_id, captured_logs
    ):
        business_id, lot, buyer = committed_lot

        stale_session = Session(bind=committing_engine, expire_on_commit=False)
        try:
            stale = _load_lot(stale_session, lot.id)
            stale_session.commit()
            with Session(bind=committing_engine) as other:
                LotService(other, DeterministicClock()).edit_lot(
                    business_id, lot.id, actor_id=test_actor_id, variety="Jyoti"
                )
                other.commit()

            stale.vehicle_bhada_rate = Decimal("10")
            with pytest.raises(OptimisticLockError):
                LotService(stale_session, DeterministicClock())._flush("Lot", stale.id)
            stale_session.rollback()
        finally:
            stale_session.close()

        conflicts = [r for r in captured_logs() if r["message"] == "optimistic_lock_conflict"]
        assert conflicts[0]["entity_type"] == "Lot"


class TestSequentialBidding:

    def test_second_session_sees_committed_stock(
        self, committing_engine, committed_lot, test_actor_id
    ):
        business_id, lot, buyer = committed_lot

        with Session(bind=committing_engine) as first:
            BidService(first, DeterministicClock()).create_bid(
                business_id, lot.id, buyer.id, "20", 60, actor_id=test_actor_id
            )
            first.commit()

        with Session(bind=committing_engine) as second:
            with pytest.raises(InsufficientStockError) as exc_info:
                BidService(second, DeterministicClock()).create_bid(
                    business_id, lot.id, buyer.id, "20", 60, actor_id=test_actor_id
                )
            assert exc_info.value.available == 40


@pytest.mark.postgres
class TestConcurrentBidding:
    """Real parallel bids; PostgreSQL only."""

    def test_two_bids_for_the_same_bags_one_wins(
        self, committing_engine, committed_lot, test_actor_id
    ):
        business_id, lot, buyer = committed_lot
        barrier = threading.Barrier(2)

        def bid() -> str:
            barrier.wait()
            with Session(bind=committing_engine) as s:
                try:
                    BidService(s, DeterministicClock()).create_bid(
                        business_id, lot.id, buyer.id, "20", 60, actor_id=test_actor_id
                    )
                    s.commit()
                    return "ok"
                except InsufficientStockError:
                    s.rollback()
                    return "insufficient"

        with ThreadPoolExecutor(max_workers=2) as pool:
            outcomes = sorted(f.result() for f in [pool.submit(bid) for _ in range(2)])

        assert outcomes == ["insufficient", "ok"]
        with Session(bind=committing_engine) as check:
            assert _load_lot(check, lot.id).remaining_bags == 40

    def test_many_small_bids_never_oversell(
        self, committing_engine, committed_lot, test_actor_id
    ):
        business_id, lot, buyer = committed_lot
        threads = 12
        barrier = threading.Barrier(threads)

        def bid() -> bool:
            barrier.wait()
            with Session(bind=committing_engine) as s:
                try:
                    BidService(s, DeterministicClock()).create_bid(
                        business_id, lot.id, buyer.id, "20", 10, actor_id=test_actor_id
                    )
                    s.commit()
                    return True
                except InsufficientStockError:
                    s.rollback()
                    return False

        with ThreadPoolExecutor(max_workers=threads) as pool:
            accepted = sum(f.result() for f in [pool.submit(bid) for _ in range(threads)])

        assert accepted == 10
        with Session(bind=committing_engine) as check:
            assert _load_lot(check, lot.id).remaining_bags == 0
