"""Integration tests for the SQL repositories against SQLite"""

import pytest
from datetime import date
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError
from debt_settlement.domain.models import RepaymentType, SettleStatus
from debt_settlement.domain.values import Money, OrderIdentity, Period
from debt_settlement.infrastructure.database.models import (
    DebtContractRow,
    OutboundEvent,
    RepaymentRecordRow,
)
from debt_settlement.infrastructure.database.repositories import (
    DivideRecordRepository,
    OutboxEventSink,
    OutboxRepository,
    SqlDebtContractRepository,
)

from conftest import TestingSessionLocal, yearly_contract

pytestmark = pytest.mark.integration


def test_save_assigns_ids(db: Session, contract):
    repo = SqlDebtContractRepository(db)

    repo.save(contract)
    db.commit()

    assert contract.id is not None
    assert all(plan.id is not None for plan in contract.repayment_plans)


def test_round_trip_preserves_state(db: Session, contract, order, march_order_date):
    repo = SqlDebtContractRepository(db)
    repo.save(contract)
    contract.settle_debt(order, Money.of_major("500"), march_order_date)
    repo.save(contract)
    db.commit()

    loaded = repo.find_by_id(contract.id)

    assert loaded == contract
    assert loaded.paid_total_amount == Money.of_major("500")
    assert loaded.status is SettleStatus.SETTLED
    assert [str(p.period) for p in loaded.repayment_plans][:3] == ["2025-01", "2025-02", "2025-03"]
    assert loaded.find_plan(Period(2025, 3)).paid_amount == Money.of_major("500")

    record = loaded.repayment_records[0]
    assert record.order_identity == order
    assert record.type is RepaymentType.SETTLEMENT
    assert record.id is not None
    assert loaded.drain_domain_events() == []


def test_records_are_append_only(db: Session, contract, order, march_order_date):
    repo = SqlDebtContractRepository(db)
    contract.settle_debt(order, Money.of_major("500"), march_order_date)
    repo.save(contract)

    loaded = repo.find_by_id(contract.id)
    loaded.rollback_debt(order, Money.of_major("200"))
    repo.save(loaded)
    db.commit()

    rows = db.query(RepaymentRecordRow).order_by(RepaymentRecordRow.id).all()
    assert [(r.type, r.amount_cents) for r in rows] == [("settlement", 50000), ("rollback", 20000)]

    reloaded = repo.find_by_id(contract.id)
    assert reloaded.paid_total_amount == Money.of_major("300")
    assert reloaded.status is SettleStatus.PARTIAL_BACK


def test_line_item_identity_survives_round_trip(db: Session, contract, march_order_date):
    repo = SqlDebtContractRepository(db)
    line = OrderIdentity.line_item_level("SO1", 5)
    contract.settle_debt(line, Money.of_major("10"), march_order_date)
    repo.save(contract)
    db.commit()

    loaded = repo.find_by_id(contract.id)

    assert loaded.settled_amount_for(line) == Money.of_major("10")
    assert loaded.settled_amount_for(OrderIdentity.order_level("SO1")) == Money.ZERO


def test_finders(db: Session):
    repo = SqlDebtContractRepository(db)
    older = repo.save(yearly_contract(case_entrust_id=1, member_user_id=7))
    newer = repo.save(yearly_contract(year=2026, case_entrust_id=2, member_user_id=7))
    db.commit()

    assert repo.find_by_case_entrust_id(1) == older
    assert repo.find_by_member_user_id(7) == newer
    assert repo.find_by_case_entrust_id_and_member_user_id(2, 7) == newer
    assert repo.find_by_case_entrust_id_and_member_user_id(2, 8) is None
    assert repo.find_by_id(999) is None


def test_version_increments_on_update(db: Session, contract, order, march_order_date):
    repo = SqlDebtContractRepository(db)
    repo.save(contract)
    db.commit()
    assert db.get(DebtContractRow, contract.id).version == 1

    contract.settle_debt(order, Money.of_major("1"), march_order_date)
    repo.save(contract)
    db.commit()

    assert db.get(DebtContractRow, contract.id).version == 2


def test_concurrent_update_is_rejected(db: Session, contract, order):
    repo = SqlDebtContractRepository(db)
    repo.save(contract)
    db.commit()

    other_session = TestingSessionLocal()
    try:
        other_repo = SqlDebtContractRepository(other_session)
        first = repo.find_by_id(contract.id)
        second = other_repo.find_by_id(contract.id)

        first.settle_debt(order, Money.of_major("100"), date(2025, 1, 3))
        repo.save(first)
        db.commit()

        second.settle_debt(order, Money.of_major("200"), date(2025, 2, 3))
        with pytest.raises(StaleDataError):
            other_repo.save(second)
            other_session.commit()
    finally:
        other_session.rollback()
        other_session.close()

    db.expire_all()
    stored = repo.find_by_id(contract.id)
    assert stored.paid_total_amount == Money.of_major("100")
    assert stored.find_plan(Period(2025, 1)).paid_amount == Money.of_major("100")
    assert stored.find_plan(Period(2025, 2)).paid_amount == Money.ZERO
    assert len(stored.repayment_records) == 1


def test_stale_copy_in_same_session_is_rejected(db: Session, contract, order):
    repo = SqlDebtContractRepository(db)
    repo.save(contract)
    db.commit()

    first = repo.find_by_id(contract.id)
    second = repo.find_by_id(contract.id)
    assert first.version == second.version == 1

    first.settle_debt(order, Money.of_major("100"), date(2025, 1, 3))
    repo.save(first)
    assert first.version == 2

    second.settle_debt(order, Money.of_major("200"), date(2025, 2, 3))
    with pytest.raises(StaleDataError):
        repo.save(second)


def test_plan_registration_bumps_version(db: Session, contract, order):
    repo = SqlDebtContractRepository(db)
    repo.save(contract)
    db.commit()

    stale = repo.find_by_id(contract.id)
    current = repo.find_by_id(contract.id)
    current.add_repayment_plan(Period(2026, 1), Money.of_major("1000"))
    repo.save(current)
    db.commit()

    assert db.get(DebtContractRow, contract.id).version == 2
    stale.settle_debt(order, Money.of_major("100"), date(2025, 1, 3))
    with pytest.raises(StaleDataError):
        repo.save(stale)


def test_allocation_lookup(db: Session):
    allocations = DivideRecordRepository(db)
    allocations.add(OrderIdentity.line_item_level("SO1", 1), Money.of_major("100"))
    allocations.add(OrderIdentity.line_item_level("SO1", 2), Money.of_major("50.50"))
    db.commit()

    assert allocations.allocated_amount(OrderIdentity.order_level("SO1")) == Money.of_major("150.50")
    assert allocations.allocated_amount(OrderIdentity.line_item_level("SO1", 2)) == Money.of_major("50.50")
    assert allocations.allocated_amount(OrderIdentity.order_level("SO2")) == Money.ZERO
    assert allocations.has_allocation(OrderIdentity.line_item_level("SO1", 1))
    assert not allocations.has_allocation(OrderIdentity.line_item_level("SO1", 3))


def test_outbox_sink_and_delivery_bookkeeping(db: Session, contract, order, march_order_date):
    contract.settle_debt(order, Money.of_major("500"), march_order_date)
    events = contract.drain_domain_events()

    OutboxEventSink(db, target_url="http://hooks.test/events").publish(events)
    db.commit()

    outbox = OutboxRepository(db)
    pending = outbox.get_pending()
    assert len(pending) == 1
    assert pending[0].event_id == events[0].event_id
    assert pending[0].event_type == "DebtSettled"
    assert pending[0].payload["settled_cents"] == 50000
    assert pending[0].target_url == "http://hooks.test/events"

    outbox.mark_failed_attempt(pending[0], max_attempts=2)
    assert pending[0].status == "pending"
    outbox.mark_failed_attempt(pending[0], max_attempts=2)
    assert pending[0].status == "failed"
    db.commit()

    assert outbox.get_pending() == []
    assert db.query(OutboundEvent).one().attempts == 2
