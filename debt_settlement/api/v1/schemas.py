"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field
from datetime import date
from decimal import Decimal
from typing import List, Optional

from debt_settlement.application.commands import RefundStatus


class PlanInput(BaseModel):
    """Installment to register on a contract"""

    period: str = Field(..., pattern=r"^\d{4}-\d{2}$", description="Installment period, YYYY-MM")
    due_amount: Decimal = Field(..., gt=0, description="Amount due for the period (major units)")


class OpenContractRequest(BaseModel):
    """Request body for POST /v1/contracts"""

    case_entrust_id: int = Field(..., description="Case entrustment identifier")
    member_user_id: int = Field(..., description="Member identifier")
    total_amount: Decimal = Field(..., gt=0, description="Contract total (major units)")
    plans: List[PlanInput] = Field(default_factory=list)


class PlanSchema(BaseModel):
    """Single repayment plan of a contract"""

    period: str
    due_cents: int
    paid_cents: int
    completed: bool


class RecordSchema(BaseModel):
    """Single repayment record of a contract"""

    record_id: Optional[int] = None
    order_number: str
    order_detail_id: Optional[int] = None
    period: str
    type: str
    amount_cents: int
    recorded_at: str
    remark: Optional[str] = None


class ContractResponse(BaseModel):
    """Response for contract endpoints"""

    contract_id: int
    case_entrust_id: int
    member_user_id: int
    total_cents: int
    paid_total_cents: int
    remaining_cents: int
    status: str
    created_at: str
    plans: List[PlanSchema]
    records: List[RecordSchema]


class SettleRequest(BaseModel):
    """Request body for POST /v1/settlements"""

    order_number: str = Field(..., min_length=1, description="Order number")
    order_detail_id: Optional[int] = Field(None, description="Order line id for line-item settlement")
    member_user_id: int = Field(..., description="Member identifier")
    order_created_on: date = Field(..., description="Order creation date, selects the period")


class SettleResponse(BaseModel):
    """Response for POST /v1/settlements"""

    settled: bool
    contract_id: Optional[int] = None
    paid_total_cents: Optional[int] = None
    status: Optional[str] = None


class RollbackRequest(BaseModel):
    """Request body for POST /v1/rollbacks"""

    order_number: str = Field(..., min_length=1, description="Order number")
    order_detail_id: Optional[int] = Field(None, description="Order line id for line-item refunds")
    member_user_id: int = Field(..., description="Member identifier")
    refund_amount: Decimal = Field(..., gt=0, description="Refunded amount (major units)")
    refund_status: RefundStatus = Field(..., description="2 = partial refund, 3 = full refund")


class RollbackResponse(BaseModel):
    """Response for POST /v1/rollbacks"""

    rolled_back_cents: int
    contract_id: Optional[int] = None
    paid_total_cents: Optional[int] = None
    status: Optional[str] = None
