"""Debt contract endpoints - open a contract, register plans, inspect state"""

import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from debt_settlement.api.v1.schemas import (
    ContractResponse,
    OpenContractRequest,
    PlanInput,
    PlanSchema,
    RecordSchema,
)
from debt_settlement.api.dependencies import get_request_id, get_settlement_service
from debt_settlement.application.commands import OpenContractCommand
from debt_settlement.application.service import DebtSettlementService
from debt_settlement.domain.contract import DebtContract
from debt_settlement.domain.exceptions import (
    ContractAlreadyExistsError,
    ContractNotFoundError,
    PlanConflictError,
    PreconditionViolation,
)
from debt_settlement.infrastructure.database.session import get_db

router = APIRouter()


def to_contract_response(contract: DebtContract) -> ContractResponse:
    return ContractResponse(
        contract_id=contract.id,
        case_entrust_id=contract.case_entrust_id,
        member_user_id=contract.member_user_id,
        total_cents=contract.total_amount.cents,
        paid_total_cents=contract.paid_total_amount.cents,
        remaining_cents=contract.remaining_amount.cents,
        status=contract.status.value,
        created_at=contract.created_at.isoformat(),
        plans=[
            PlanSchema(
                period=str(plan.period),
                due_cents=plan.due_amount.cents,
                paid_cents=plan.paid_amount.cents,
                completed=plan.completed,
            )
            for plan in contract.repayment_plans
        ],
        records=[
            RecordSchema(
                record_id=record.id,
                order_number=record.order_identity.order_number,
                order_detail_id=record.order_identity.line_item_id,
                period=str(record.period),
                type=record.type.value,
                amount_cents=record.amount.cents,
                recorded_at=record.recorded_at.isoformat(),
                remark=record.remark,
            )
            for record in contract.repayment_records
        ],
    )


@router.post("/contracts", response_model=ContractResponse, status_code=201)
def open_contract(
    request_body: OpenContractRequest,
    request: Request,
    db: Session = Depends(get_db),
    service: DebtSettlementService = Depends(get_settlement_service),
):
    """Open a debt contract for a case entrustment with its installment plans"""
    request_id = get_request_id(request)
    command = OpenContractCommand(
        case_entrust_id=request_body.case_entrust_id,
        member_user_id=request_body.member_user_id,
        total_amount=request_body.total_amount,
        plans=[(plan.period, plan.due_amount) for plan in request_body.plans],
    )

    try:
        contract = service.open_contract(command)
        db.commit()
    except (ContractAlreadyExistsError, PlanConflictError) as e:
        db.rollback()
        logging.warning(f"Contract conflict: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail=str(e))
    except PreconditionViolation as e:
        db.rollback()
        logging.warning(f"Invalid contract: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    return to_contract_response(contract)


@router.get("/contracts/{contract_id}", response_model=ContractResponse)
def get_contract(
    contract_id: int,
    service: DebtSettlementService = Depends(get_settlement_service),
):
    """Retrieve a contract with its plans and repayment records"""
    try:
        contract = service.get_contract(contract_id)
    except ContractNotFoundError:
        raise HTTPException(status_code=404, detail="Contract not found")

    return to_contract_response(contract)


@router.post("/contracts/{contract_id}/plans", response_model=ContractResponse, status_code=201)
def add_repayment_plan(
    contract_id: int,
    request_body: PlanInput,
    request: Request,
    db: Session = Depends(get_db),
    service: DebtSettlementService = Depends(get_settlement_service),
):
    """Register one more installment period on an existing contract"""
    request_id = get_request_id(request)

    try:
        contract = service.add_repayment_plan(contract_id, request_body.period, request_body.due_amount)
        db.commit()
    except ContractNotFoundError:
        db.rollback()
        raise HTTPException(status_code=404, detail="Contract not found")
    except PlanConflictError as e:
        db.rollback()
        logging.warning(f"Plan conflict: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail=str(e))
    except PreconditionViolation as e:
        db.rollback()
        raise HTTPException(status_code=422, detail=str(e))

    return to_contract_response(contract)
