"""Use-case inputs as they arrive from the transport layer"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import IntEnum
from typing import List, Tuple

from debt_settlement.domain.values import OrderIdentity


class RefundStatus(IntEnum):
    """Refund status codes sent by the order system"""

    PARTIAL = 2
    FULL = 3


def _order_identity(order_number: str, order_detail_id: int | None) -> OrderIdentity:
    if order_detail_id is not None:
        return OrderIdentity.line_item_level(order_number, order_detail_id)
    return OrderIdentity.order_level(order_number)


@dataclass(frozen=True)
class SettleDebtCommand:
    """Settle an order's allocation against the member's contract (after delivery is confirmed)"""

    order_number: str
    member_user_id: int
    order_created_on: date
    order_detail_id: int | None = None

    @property
    def is_line_item_level(self) -> bool:
        return self.order_detail_id is not None

    def order_identity(self) -> OrderIdentity:
        return _order_identity(self.order_number, self.order_detail_id)


@dataclass(frozen=True)
class RollbackDebtCommand:
    """Reverse an order's settlement after a refund"""

    order_number: str
    member_user_id: int
    refund_amount: Decimal
    refund_status: RefundStatus
    order_detail_id: int | None = None

    @property
    def is_line_item_level(self) -> bool:
        return self.order_detail_id is not None

    @property
    def is_full_refund(self) -> bool:
        return self.refund_status == RefundStatus.FULL

    def order_identity(self) -> OrderIdentity:
        return _order_identity(self.order_number, self.order_detail_id)


@dataclass(frozen=True)
class OpenContractCommand:
    """Open a debt contract with its installment plans (period as YYYY-MM, amounts in major units)"""

    case_entrust_id: int
    member_user_id: int
    total_amount: Decimal
    plans: List[Tuple[str, Decimal]] = field(default_factory=list)
