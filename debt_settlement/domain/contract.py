"""DebtContract aggregate root - settlement, rollback and completion of installment debt"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from typing import Iterable, List, Tuple

from debt_settlement.domain.events import (
    ContractCompleted,
    DebtRolledBack,
    DebtSettled,
    DomainEvent,
    RepaymentPlanNotMatched,
)
from debt_settlement.domain.exceptions import PlanConflictError, PreconditionViolation
from debt_settlement.domain.models import RepaymentPlan, RepaymentRecord, SettleStatus
from debt_settlement.domain.values import Money, OrderIdentity, Period


class DebtContract:
    """
    A member's installment debt for one case entrustment.

    The contract owns its repayment plans (one per period) and its repayment
    records (append-only ledger). All mutation goes through add_repayment_plan,
    settle_debt and rollback_debt so that paid_total_amount always equals the
    sum of the plans' paid amounts.

    Events raised by those operations are buffered until the caller drains
    them with drain_domain_events(), after the mutated state has been saved.
    """

    def __init__(self, case_entrust_id: int, member_user_id: int, total_amount: Money):
        if case_entrust_id is None:
            raise PreconditionViolation("Case entrustment id is required")
        if member_user_id is None:
            raise PreconditionViolation("Member user id is required")
        if total_amount is None or total_amount.is_zero():
            raise PreconditionViolation("Contract total amount must be greater than zero")

        self._id: int | None = None
        self._version: int | None = None
        self._case_entrust_id = case_entrust_id
        self._member_user_id = member_user_id
        self._total_amount = total_amount
        self._paid_total_amount = Money.ZERO
        self._status = SettleStatus.PENDING
        self._created_at = datetime.now()
        self._plans: List[RepaymentPlan] = []
        self._records: List[RepaymentRecord] = []
        self._events: List[DomainEvent] = []

    @classmethod
    def restore(
        cls,
        id: int,
        case_entrust_id: int,
        member_user_id: int,
        total_amount: Money,
        paid_total_amount: Money,
        status: SettleStatus,
        created_at: datetime,
        plans: Iterable[RepaymentPlan] | None = None,
        records: Iterable[RepaymentRecord] | None = None,
        version: int | None = None,
    ) -> DebtContract:
        """
        Rehydrate a persisted contract. The event buffer always starts empty.

        version is the row version the contract was read at; saving checks it
        so a concurrent writer is detected instead of overwritten.
        """
        contract = cls(case_entrust_id, member_user_id, total_amount)
        contract._id = id
        contract._version = version
        contract._paid_total_amount = paid_total_amount
        contract._status = status
        contract._created_at = created_at
        contract._plans = list(plans or [])
        contract._records = list(records or [])
        return contract

    # Aggregate behaviour

    def add_repayment_plan(self, period: Period, due_amount: Money) -> RepaymentPlan:
        """Register the installment for a period; each period may appear once"""
        if self._find_plan(period) is not None:
            raise PlanConflictError(f"Repayment plan already exists for period {period}")
        plan = RepaymentPlan(period=period, due_amount=due_amount)
        self._plans.append(plan)
        return replace(plan)

    def settle_debt(self, order_identity: OrderIdentity, amount: Money, order_created_on: date) -> bool:
        """
        Credit an order's allocated amount against the period it was placed in.

        Flow:
        1. Infer the period from the order creation date
        2. No plan for that period → RepaymentPlanNotMatched event, return False
        3. Plan absorbs what it can; nothing absorbed (already paid) → return False
        4. Record the settlement, raise DebtSettled, check for completion

        Returns True when any amount was credited.
        """
        if order_identity is None or amount is None or amount.is_zero():
            raise PreconditionViolation("Order identity and a positive amount are required")

        period = Period.from_date(order_created_on)
        plan = self._find_plan(period)

        if plan is None:
            self._events.append(
                RepaymentPlanNotMatched(
                    contract_id=self._id,
                    order_identity=order_identity,
                    period=period,
                    amount=amount,
                )
            )
            return False

        applied = plan.record_payment(amount)
        if applied.is_zero():
            return False

        self._paid_total_amount = self._paid_total_amount + applied
        self._records.append(RepaymentRecord.create_settlement(order_identity, period, applied))
        self._status = SettleStatus.SETTLED

        self._events.append(
            DebtSettled(
                contract_id=self._id,
                order_identity=order_identity,
                period=period,
                settled_amount=applied,
                total_paid_amount=self._paid_total_amount,
            )
        )

        self._check_completion()
        return True

    def rollback_debt(self, order_identity: OrderIdentity, refund_amount: Money) -> Money:
        """
        Reverse an order's settlement after a refund, latest period first.

        The rollback is capped at what the order ever settled. Status becomes
        ROLLED_BACK when the whole settled amount was reversed, PARTIAL_BACK
        otherwise. Returns the amount actually rolled back (zero when the order
        never settled against this contract).
        """
        if order_identity is None or refund_amount is None or refund_amount.is_zero():
            raise PreconditionViolation("Order identity and a positive refund amount are required")

        settlements = self._settlement_records_for(order_identity)
        if not settlements:
            return Money.ZERO

        total_settled = sum((r.amount for r in settlements), Money.ZERO)
        to_rollback = min(refund_amount, total_settled)
        if to_rollback.is_zero():
            return Money.ZERO

        periods = sorted({r.period for r in settlements}, reverse=True)

        remaining = to_rollback
        for period in periods:
            if remaining.is_zero():
                break

            plan = self._find_plan(period)
            if plan is None:
                continue

            rolled = plan.rollback_payment(remaining)
            if not rolled.is_zero():
                self._records.append(RepaymentRecord.create_rollback(order_identity, period, rolled))
                remaining = remaining - rolled

        rolled_back = to_rollback - remaining
        self._paid_total_amount = self._paid_total_amount - rolled_back

        if rolled_back == total_settled:
            self._status = SettleStatus.ROLLED_BACK
        else:
            self._status = SettleStatus.PARTIAL_BACK

        self._events.append(
            DebtRolledBack(
                contract_id=self._id,
                order_identity=order_identity,
                rolled_back_amount=rolled_back,
                total_paid_amount=self._paid_total_amount,
            )
        )
        return rolled_back

    def drain_domain_events(self) -> List[DomainEvent]:
        """Return buffered events in emission order and empty the buffer"""
        events = list(self._events)
        self._events.clear()
        return events

    def _check_completion(self) -> None:
        if self._plans and all(plan.completed for plan in self._plans):
            self._status = SettleStatus.COMPLETED
            self._events.append(
                ContractCompleted(contract_id=self._id, final_paid_amount=self._paid_total_amount)
            )

    def _settlement_records_for(self, order_identity: OrderIdentity) -> List[RepaymentRecord]:
        return [r for r in self._records if r.is_settlement and r.order_identity == order_identity]

    def _find_plan(self, period: Period) -> RepaymentPlan | None:
        for plan in self._plans:
            if plan.period == period:
                return plan
        return None

    # Queries

    def find_plan(self, period: Period) -> RepaymentPlan | None:
        """Copy of the plan for the period; changing it does not touch the contract"""
        plan = self._find_plan(period)
        return replace(plan) if plan is not None else None

    def settled_amount_for(self, order_identity: OrderIdentity) -> Money:
        """Sum of every settlement recorded for the order identity"""
        return sum((r.amount for r in self._settlement_records_for(order_identity)), Money.ZERO)

    @property
    def id(self) -> int | None:
        return self._id

    def assign_id(self, contract_id: int) -> None:
        """Set the surrogate id once the contract has been persisted"""
        if self._id is not None and self._id != contract_id:
            raise PreconditionViolation(f"Contract already has id {self._id}")
        self._id = contract_id

    @property
    def version(self) -> int | None:
        """Row version the contract was last loaded or saved at (None until persisted)"""
        return self._version

    def assign_version(self, version: int) -> None:
        self._version = version

    def assign_plan_id(self, period: Period, plan_id: int) -> None:
        """Back-fill the surrogate id of a newly persisted plan"""
        plan = self._find_plan(period)
        if plan is None:
            raise PreconditionViolation(f"No repayment plan for period {period}")
        plan.id = plan_id

    def assign_record_id(self, position: int, record_id: int) -> None:
        """Back-fill the surrogate id of the record at its ledger position"""
        self._records[position].id = record_id

    @property
    def case_entrust_id(self) -> int:
        return self._case_entrust_id

    @property
    def member_user_id(self) -> int:
        return self._member_user_id

    @property
    def total_amount(self) -> Money:
        return self._total_amount

    @property
    def paid_total_amount(self) -> Money:
        return self._paid_total_amount

    @property
    def remaining_amount(self) -> Money:
        if self._paid_total_amount >= self._total_amount:
            return Money.ZERO
        return self._total_amount - self._paid_total_amount

    @property
    def status(self) -> SettleStatus:
        return self._status

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def repayment_plans(self) -> Tuple[RepaymentPlan, ...]:
        """Snapshot copies; mutate through add_repayment_plan, settle_debt and rollback_debt"""
        return tuple(replace(plan) for plan in self._plans)

    @property
    def repayment_records(self) -> Tuple[RepaymentRecord, ...]:
        return tuple(replace(record) for record in self._records)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, DebtContract):
            return NotImplemented
        if self._id is not None and other._id is not None:
            return self._id == other._id
        return (self._case_entrust_id, self._member_user_id) == (
            other._case_entrust_id,
            other._member_user_id,
        )

    def __hash__(self) -> int:
        return hash((self._case_entrust_id, self._member_user_id))

    def __repr__(self) -> str:
        return (
            f"DebtContract(id={self._id}, case_entrust_id={self._case_entrust_id}, "
            f"total={self._total_amount}, paid={self._paid_total_amount}, status={self._status.value})"
        )
