"""POST /v1/settlements and POST /v1/rollbacks - settle order allocations and reverse them on refund"""

import time
import logging
from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from debt_settlement.api.v1.schemas import (
    RollbackRequest,
    RollbackResponse,
    SettleRequest,
    SettleResponse,
)
from debt_settlement.api.dependencies import get_outbox_relay, get_request_id, get_settlement_service
from debt_settlement.application.commands import RollbackDebtCommand, SettleDebtCommand
from debt_settlement.application.service import DebtSettlementService
from debt_settlement.domain.exceptions import PreconditionViolation
from debt_settlement.infrastructure.clients.webhook import OutboxRelay
from debt_settlement.infrastructure.database.session import get_db
from debt_settlement.infrastructure.observability.logging import log_rollback, log_settlement

router = APIRouter()


@router.post("/settlements", response_model=SettleResponse)
def settle_debt(
    request_body: SettleRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    service: DebtSettlementService = Depends(get_settlement_service),
    relay: OutboxRelay = Depends(get_outbox_relay),
):
    """
    Settle an order's supplier allocation against the member's debt contract.

    Flow:
    1. Look up the order's allocation (divide records)
    2. Load the member's contract and credit the period of the order date
    3. Persist contract + outbox events in one transaction
    4. Relay outbox events to the webhook after commit

    A soft failure (no allocation, no contract, unmatched or fully paid
    period) is a 200 with settled=false.
    """
    start_time = time.time()
    request_id = get_request_id(request)
    command = SettleDebtCommand(
        order_number=request_body.order_number,
        order_detail_id=request_body.order_detail_id,
        member_user_id=request_body.member_user_id,
        order_created_on=request_body.order_created_on,
    )

    try:
        result = service.settle_debt(command)
        db.commit()

    except PreconditionViolation as e:
        db.rollback()
        logging.warning(f"Invalid settlement request: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    except StaleDataError:
        db.rollback()
        logging.warning("Concurrent contract update during settlement", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail="Contract was modified concurrently, retry")

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    if result.contract is not None:
        background_tasks.add_task(relay.flush)

    duration_ms = (time.time() - start_time) * 1000
    log_settlement(request_id, command.order_number, command.member_user_id, result.settled, duration_ms)

    contract = result.contract
    return SettleResponse(
        settled=result.settled,
        contract_id=contract.id if contract else None,
        paid_total_cents=contract.paid_total_amount.cents if contract else None,
        status=contract.status.value if contract else None,
    )


@router.post("/rollbacks", response_model=RollbackResponse)
def rollback_debt(
    request_body: RollbackRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    db: Session = Depends(get_db),
    service: DebtSettlementService = Depends(get_settlement_service),
    relay: OutboxRelay = Depends(get_outbox_relay),
):
    """
    Roll back an order's settlement after a partial (2) or full (3) refund.

    The rollback never exceeds what the order settled; rolled_back_cents
    is 0 when the order never settled against the member's contract.
    """
    start_time = time.time()
    request_id = get_request_id(request)
    command = RollbackDebtCommand(
        order_number=request_body.order_number,
        order_detail_id=request_body.order_detail_id,
        member_user_id=request_body.member_user_id,
        refund_amount=request_body.refund_amount,
        refund_status=request_body.refund_status,
    )

    try:
        result = service.rollback_debt(command)
        db.commit()

    except PreconditionViolation as e:
        db.rollback()
        logging.warning(f"Invalid rollback request: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=422, detail=str(e))

    except StaleDataError:
        db.rollback()
        logging.warning("Concurrent contract update during rollback", extra={"request_id": request_id})
        raise HTTPException(status_code=409, detail="Contract was modified concurrently, retry")

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error")

    if result.contract is not None:
        background_tasks.add_task(relay.flush)

    duration_ms = (time.time() - start_time) * 1000
    log_rollback(request_id, command.order_number, command.member_user_id, result.rolled_back.cents, duration_ms)

    contract = result.contract
    return RollbackResponse(
        rolled_back_cents=result.rolled_back.cents,
        contract_id=contract.id if contract else None,
        paid_total_cents=contract.paid_total_amount.cents if contract else None,
        status=contract.status.value if contract else None,
    )
