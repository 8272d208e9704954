"""Domain models - entities owned by a debt contract and their enumerations"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from debt_settlement.domain.exceptions import PreconditionViolation
from debt_settlement.domain.values import Money, OrderIdentity, Period


class SettleStatus(str, Enum):
    """
    Lifecycle of a debt contract.

    PENDING → SETTLED → COMPLETED | ROLLED_BACK | PARTIAL_BACK

    DIVIDED ("allocation complete, awaiting settlement") is set by the
    allocation side before the first settlement. No contract operation
    produces it; it is stored and read back as-is.
    """

    PENDING = "pending"
    DIVIDED = "divided"
    SETTLED = "settled"
    ROLLED_BACK = "rolled_back"
    PARTIAL_BACK = "partial_back"
    COMPLETED = "completed"


class RepaymentType(str, Enum):
    """Direction of a repayment record"""

    SETTLEMENT = "settlement"  # debt reduced
    ROLLBACK = "rollback"  # debt restored after a refund


@dataclass(eq=False)
class RepaymentPlan:
    """
    One installment period of a contract: what is due and what has been paid.

    Only the owning DebtContract calls record_payment / rollback_payment, so
    that the contract's paid total stays equal to the sum over its plans.
    """

    period: Period
    due_amount: Money
    paid_amount: Money = Money.ZERO
    completed: bool = False
    id: int | None = None

    def __post_init__(self) -> None:
        if self.period is None:
            raise PreconditionViolation("Period is required")
        if self.due_amount is None or self.due_amount.is_zero():
            raise PreconditionViolation("Due amount must be greater than zero")
        if self.paid_amount is None:
            raise PreconditionViolation("Paid amount is required")

    @property
    def remaining_amount(self) -> Money:
        if self.paid_amount >= self.due_amount:
            return Money.ZERO
        return self.due_amount - self.paid_amount

    def record_payment(self, amount: Money) -> Money:
        """
        Absorb up to the remaining due amount.

        Returns the amount actually applied, which is zero when the period is
        already fully paid and never more than what was outstanding.
        """
        remaining = self.remaining_amount
        if remaining.is_zero():
            return Money.ZERO

        applied = min(amount, remaining)
        self.paid_amount = self.paid_amount + applied
        if self.paid_amount >= self.due_amount:
            self.completed = True
        return applied

    def rollback_payment(self, amount: Money) -> Money:
        """Give back up to what was paid; reopens the period if it drops below due"""
        if self.paid_amount.is_zero():
            return Money.ZERO

        applied = min(amount, self.paid_amount)
        self.paid_amount = self.paid_amount - applied
        if self.completed and self.paid_amount < self.due_amount:
            self.completed = False
        return applied

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RepaymentPlan):
            return NotImplemented
        if self.id is not None and other.id is not None:
            return self.id == other.id
        return self.period == other.period

    def __hash__(self) -> int:
        return hash(self.period)


@dataclass(eq=False)
class RepaymentRecord:
    """Append-only ledger line for one settlement or rollback"""

    order_identity: OrderIdentity
    period: Period
    type: RepaymentType
    amount: Money
    recorded_at: datetime = field(default_factory=datetime.now)
    remark: str | None = None
    id: int | None = None

    def __post_init__(self) -> None:
        if self.order_identity is None:
            raise PreconditionViolation("Order identity is required")
        if self.period is None:
            raise PreconditionViolation("Period is required")
        if self.type is None:
            raise PreconditionViolation("Repayment type is required")
        if self.amount is None or self.amount.is_zero():
            raise PreconditionViolation("Record amount must be greater than zero")

    @classmethod
    def create_settlement(cls, order_identity: OrderIdentity, period: Period, amount: Money) -> RepaymentRecord:
        return cls(order_identity, period, RepaymentType.SETTLEMENT, amount, remark="settlement")

    @classmethod
    def create_rollback(cls, order_identity: OrderIdentity, period: Period, amount: Money) -> RepaymentRecord:
        return cls(order_identity, period, RepaymentType.ROLLBACK, amount, remark="refund rollback")

    @property
    def is_settlement(self) -> bool:
        return self.type is RepaymentType.SETTLEMENT

    def annotate(self, remark: str | None) -> None:
        """Replace the free-text remark (audit corrections only)"""
        self.remark = remark

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RepaymentRecord):
            return NotImplemented
        if self.id is not None and other.id is not None:
            return self.id == other.id
        return (
            self.order_identity == other.order_identity
            and self.period == other.period
            and self.type is other.type
        )

    def __hash__(self) -> int:
        return hash((self.order_identity, self.period, self.type))
