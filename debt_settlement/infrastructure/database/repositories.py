"""Data access layer for debt contracts, allocations and outbound events"""

from datetime import datetime, timezone
from typing import List, Optional, Sequence
from sqlalchemy import func
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError
from debt_settlement.config import settings
from debt_settlement.infrastructure.database.models import (
    DebtContractRow,
    RepaymentPlanRow,
    RepaymentRecordRow,
    DivideRecordRow,
    OutboundEvent,
)
from debt_settlement.domain.contract import DebtContract
from debt_settlement.domain.events import DomainEvent, event_payload
from debt_settlement.domain.exceptions import ContractNotFoundError
from debt_settlement.domain.models import RepaymentPlan, RepaymentRecord, RepaymentType, SettleStatus
from debt_settlement.domain.values import Money, OrderIdentity, Period


class SqlDebtContractRepository:
    """Repository for debt contracts with their plans and records"""

    def __init__(self, db: Session):
        self.db = db

    def save(self, contract: DebtContract) -> DebtContract:
        """
        Insert or update a contract.

        Plans are inserted when new and otherwise only have paid/completed
        refreshed. Records are append-only, so only records without an id are
        written. New rows get their ids copied back onto the domain objects.

        A contract loaded at an older version than the stored row raises
        StaleDataError: another transaction saved it in between.
        """
        if contract.id is None:
            row = DebtContractRow(
                case_entrust_id=contract.case_entrust_id,
                member_user_id=contract.member_user_id,
                total_cents=contract.total_amount.cents,
                created_at=contract.created_at,
            )
            self.db.add(row)
        else:
            row = self.db.get(DebtContractRow, contract.id)
            if row is None:
                raise ContractNotFoundError(f"Debt contract {contract.id} not found")
            if contract.version is not None and row.version != contract.version:
                raise StaleDataError(
                    f"Debt contract {contract.id} was loaded at version {contract.version}, "
                    f"stored version is {row.version}"
                )
            # Bump the version even when only plans or records change
            flag_modified(row, "status")

        row.paid_total_cents = contract.paid_total_amount.cents
        row.status = contract.status.value

        existing_plans = {plan_row.id: plan_row for plan_row in row.plans}
        new_plans = []
        for plan in contract.repayment_plans:
            if plan.id is None:
                plan_row = RepaymentPlanRow(
                    period=str(plan.period),
                    due_cents=plan.due_amount.cents,
                    paid_cents=plan.paid_amount.cents,
                    completed=plan.completed,
                )
                row.plans.append(plan_row)
                new_plans.append((plan, plan_row))
            else:
                plan_row = existing_plans[plan.id]
                plan_row.paid_cents = plan.paid_amount.cents
                plan_row.completed = plan.completed

        new_records = []
        for position, record in enumerate(contract.repayment_records):
            if record.id is None:
                record_row = RepaymentRecordRow(
                    order_number=record.order_identity.order_number,
                    order_detail_id=record.order_identity.line_item_id,
                    period=str(record.period),
                    type=record.type.value,
                    amount_cents=record.amount.cents,
                    recorded_at=record.recorded_at,
                    remark=record.remark,
                )
                row.records.append(record_row)
                new_records.append((position, record_row))

        self.db.flush()  # Get IDs without committing

        contract.assign_id(row.id)
        contract.assign_version(row.version)
        for plan, plan_row in new_plans:
            contract.assign_plan_id(plan.period, plan_row.id)
        for position, record_row in new_records:
            contract.assign_record_id(position, record_row.id)

        return contract

    def find_by_id(self, contract_id: int) -> Optional[DebtContract]:
        row = self.db.get(DebtContractRow, contract_id)
        return self._to_domain(row) if row else None

    def find_by_case_entrust_id(self, case_entrust_id: int) -> Optional[DebtContract]:
        row = (
            self.db.query(DebtContractRow)
            .filter(DebtContractRow.case_entrust_id == case_entrust_id)
            .first()
        )
        return self._to_domain(row) if row else None

    def find_by_member_user_id(self, member_user_id: int) -> Optional[DebtContract]:
        """Most recently opened contract of the member"""
        row = (
            self.db.query(DebtContractRow)
            .filter(DebtContractRow.member_user_id == member_user_id)
            .order_by(DebtContractRow.id.desc())
            .first()
        )
        return self._to_domain(row) if row else None

    def find_by_case_entrust_id_and_member_user_id(
        self, case_entrust_id: int, member_user_id: int
    ) -> Optional[DebtContract]:
        row = (
            self.db.query(DebtContractRow)
            .filter(
                DebtContractRow.case_entrust_id == case_entrust_id,
                DebtContractRow.member_user_id == member_user_id,
            )
            .first()
        )
        return self._to_domain(row) if row else None

    @staticmethod
    def _to_domain(row: DebtContractRow) -> DebtContract:
        plans = [
            RepaymentPlan(
                period=Period.parse(plan_row.period),
                due_amount=Money.of_cents(plan_row.due_cents),
                paid_amount=Money.of_cents(plan_row.paid_cents),
                completed=plan_row.completed,
                id=plan_row.id,
            )
            for plan_row in row.plans
        ]
        records = [
            RepaymentRecord(
                order_identity=OrderIdentity(record_row.order_number, record_row.order_detail_id),
                period=Period.parse(record_row.period),
                type=RepaymentType(record_row.type),
                amount=Money.of_cents(record_row.amount_cents),
                recorded_at=record_row.recorded_at,
                remark=record_row.remark,
                id=record_row.id,
            )
            for record_row in row.records
        ]
        return DebtContract.restore(
            id=row.id,
            case_entrust_id=row.case_entrust_id,
            member_user_id=row.member_user_id,
            total_amount=Money.of_cents(row.total_cents),
            paid_total_amount=Money.of_cents(row.paid_total_cents),
            status=SettleStatus(row.status),
            created_at=row.created_at,
            plans=plans,
            records=records,
            version=row.version,
        )


class DivideRecordRepository:
    """Repository for supplier allocations ("divide records") per order line"""

    def __init__(self, db: Session):
        self.db = db

    def add(self, order_identity: OrderIdentity, amount: Money) -> DivideRecordRow:
        """Persist an allocation for an order line (or the whole order when no line id)"""
        db_record = DivideRecordRow(
            order_number=order_identity.order_number,
            order_detail_id=order_identity.line_item_id,
            supplier_cents=amount.cents,
        )
        self.db.add(db_record)
        self.db.flush()
        return db_record

    def allocated_amount(self, order_identity: OrderIdentity) -> Money:
        """Whole order → sum over all its lines; line-item identity → that line only"""
        query = self.db.query(func.coalesce(func.sum(DivideRecordRow.supplier_cents), 0)).filter(
            DivideRecordRow.order_number == order_identity.order_number
        )
        if order_identity.is_line_item_level():
            query = query.filter(DivideRecordRow.order_detail_id == order_identity.line_item_id)
        return Money.of_cents(int(query.scalar() or 0))

    def has_allocation(self, order_identity: OrderIdentity) -> bool:
        query = self.db.query(DivideRecordRow.id).filter(
            DivideRecordRow.order_number == order_identity.order_number
        )
        if order_identity.is_line_item_level():
            query = query.filter(DivideRecordRow.order_detail_id == order_identity.line_item_id)
        return query.first() is not None


class OutboxEventSink:
    """Event sink writing drained events to the outbox in the caller's transaction"""

    def __init__(self, db: Session, target_url: str | None = None):
        self.db = db
        self.target_url = target_url or settings.event_webhook_url

    def publish(self, events: Sequence[DomainEvent]) -> None:
        for event in events:
            self.db.add(
                OutboundEvent(
                    event_id=event.event_id,
                    event_type=event.event_type,
                    payload=event_payload(event),
                    target_url=self.target_url,
                )
            )
        self.db.flush()


class OutboxRepository:
    """Repository for outbox delivery bookkeeping"""

    def __init__(self, db: Session):
        self.db = db

    def get_pending(self, limit: int = 100) -> List[OutboundEvent]:
        """Pending events, oldest first"""
        return (
            self.db.query(OutboundEvent)
            .filter(OutboundEvent.status == "pending")
            .order_by(OutboundEvent.id)
            .limit(limit)
            .all()
        )

    def get(self, outbound_id: int) -> OutboundEvent:
        return self.db.get(OutboundEvent, outbound_id)

    def mark_delivered(self, outbound: OutboundEvent) -> None:
        outbound.status = "delivered"
        outbound.attempts += 1
        outbound.last_attempt_at = datetime.now(timezone.utc)

    def mark_failed_attempt(self, outbound: OutboundEvent, max_attempts: int) -> None:
        """Count a failed delivery; give up once max_attempts is reached"""
        outbound.attempts += 1
        outbound.last_attempt_at = datetime.now(timezone.utc)
        if outbound.attempts >= max_attempts:
            outbound.status = "failed"
