"""Pytest fixtures for testing"""

import os

# Point the application engine at SQLite before the package reads its settings
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import pytest
from datetime import date
from decimal import Decimal
from typing import Dict, Generator, List, Sequence
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker, Session
from debt_settlement.api.main import create_app
from debt_settlement.api.dependencies import get_outbox_relay
from debt_settlement.domain.contract import DebtContract
from debt_settlement.domain.events import DomainEvent
from debt_settlement.domain.values import Money, OrderIdentity, Period
from debt_settlement.infrastructure.database.models import Base
from debt_settlement.infrastructure.database.session import get_db, make_engine


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = make_engine(TEST_DATABASE_URL)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


class FakeRelay:
    """Stands in for the outbox relay; counts scheduled flushes"""

    def __init__(self) -> None:
        self.flushes = 0

    async def flush(self) -> int:
        self.flushes += 1
        return 0


@pytest.fixture
def relay() -> FakeRelay:
    return FakeRelay()


@pytest.fixture
def client(db: Session, relay: FakeRelay) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_outbox_relay] = lambda: relay
    return TestClient(app)


def yearly_contract(year: int = 2025, due_major: str = "1000", case_entrust_id: int = 1001, member_user_id: int = 2001) -> DebtContract:
    """Contract with 12 monthly plans of the same due amount"""
    due = Money.of_major(due_major)
    contract = DebtContract(case_entrust_id, member_user_id, due.multiply(12))
    for month in range(1, 13):
        contract.add_repayment_plan(Period(year, month), due)
    return contract


@pytest.fixture
def contract() -> DebtContract:
    """12 monthly plans of 1000.00 for 2025 (total 12000.00)"""
    return yearly_contract()


@pytest.fixture
def order() -> OrderIdentity:
    return OrderIdentity.order_level("SO20250315001")


# In-memory collaborators for application service tests


class InMemoryContractRepository:
    def __init__(self, *contracts: DebtContract) -> None:
        self.contracts: Dict[int, DebtContract] = {}
        self.saves = 0
        self._next_id = 1
        for contract in contracts:
            self.save(contract)
        self.saves = 0

    def save(self, contract: DebtContract) -> DebtContract:
        if contract.id is None:
            contract.assign_id(self._next_id)
            self._next_id += 1
        self.contracts[contract.id] = contract
        self.saves += 1
        return contract

    def find_by_id(self, contract_id: int):
        return self.contracts.get(contract_id)

    def find_by_case_entrust_id(self, case_entrust_id: int):
        return next((c for c in self.contracts.values() if c.case_entrust_id == case_entrust_id), None)

    def find_by_member_user_id(self, member_user_id: int):
        return next((c for c in self.contracts.values() if c.member_user_id == member_user_id), None)

    def find_by_case_entrust_id_and_member_user_id(self, case_entrust_id: int, member_user_id: int):
        return next(
            (
                c
                for c in self.contracts.values()
                if c.case_entrust_id == case_entrust_id and c.member_user_id == member_user_id
            ),
            None,
        )


class InMemoryAllocations:
    def __init__(self, amounts: Dict[OrderIdentity, Money] | None = None) -> None:
        self.amounts = dict(amounts or {})

    def allocated_amount(self, order_identity: OrderIdentity) -> Money:
        return self.amounts.get(order_identity, Money.ZERO)

    def has_allocation(self, order_identity: OrderIdentity) -> bool:
        return order_identity in self.amounts


class CollectingSink:
    def __init__(self) -> None:
        self.batches: List[List[DomainEvent]] = []

    def publish(self, events: Sequence[DomainEvent]) -> None:
        self.batches.append(list(events))

    @property
    def events(self) -> List[DomainEvent]:
        return [event for batch in self.batches for event in batch]


@pytest.fixture
def march_order_date() -> date:
    return date(2025, 3, 15)


@pytest.fixture
def five_hundred() -> Money:
    return Money.of_major(Decimal("500"))
