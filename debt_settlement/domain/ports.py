"""
Ports the settlement use cases depend on.

Uses Protocol for structural typing; the SQLAlchemy implementations live in
debt_settlement.infrastructure.database.repositories.
"""

from typing import Protocol, Sequence, runtime_checkable

from debt_settlement.domain.contract import DebtContract
from debt_settlement.domain.events import DomainEvent
from debt_settlement.domain.values import Money, OrderIdentity


@runtime_checkable
class DebtContractRepository(Protocol):
    """Loads and saves fully materialized contracts (plans and records included)"""

    def save(self, contract: DebtContract) -> DebtContract:
        """
        Insert or update the contract.

        Assigns surrogate ids to a new contract and to any new plans or
        records. Existing records are never rewritten.
        """
        ...

    def find_by_id(self, contract_id: int) -> DebtContract | None:
        ...

    def find_by_case_entrust_id(self, case_entrust_id: int) -> DebtContract | None:
        ...

    def find_by_member_user_id(self, member_user_id: int) -> DebtContract | None:
        ...

    def find_by_case_entrust_id_and_member_user_id(
        self, case_entrust_id: int, member_user_id: int
    ) -> DebtContract | None:
        ...


@runtime_checkable
class AllocationLookup(Protocol):
    """Amounts previously allocated ("divided") to orders, used as settlement input"""

    def allocated_amount(self, order_identity: OrderIdentity) -> Money:
        """
        Supplier allocation for the order.

        Order-level identities get the sum over all of the order's lines;
        line-item identities get that line only. Unknown orders yield Money.ZERO.
        """
        ...

    def has_allocation(self, order_identity: OrderIdentity) -> bool:
        ...


@runtime_checkable
class EventSink(Protocol):
    """Receives drained domain events in emission order"""

    def publish(self, events: Sequence[DomainEvent]) -> None:
        ...
