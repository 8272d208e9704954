"""Dependency injection for FastAPI endpoints"""

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from debt_settlement.application.service import DebtSettlementService
from debt_settlement.infrastructure.clients.webhook import OutboxRelay
from debt_settlement.infrastructure.database.repositories import (
    DivideRecordRepository,
    OutboxEventSink,
    SqlDebtContractRepository,
)
from debt_settlement.infrastructure.database.session import SessionLocal, get_db


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_settlement_service(db: Session = Depends(get_db)) -> DebtSettlementService:
    """Settlement service bound to the request's database session"""
    return DebtSettlementService(
        contracts=SqlDebtContractRepository(db),
        allocations=DivideRecordRepository(db),
        event_sink=OutboxEventSink(db),
    )


def get_outbox_relay() -> OutboxRelay:
    """Provide outbox relay instance"""
    return OutboxRelay(SessionLocal)
