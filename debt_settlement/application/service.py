"""
Debt settlement application service.

Thin orchestration around the DebtContract aggregate:
1. Resolve the order identity and amounts from the command
2. Load the member's contract
3. Run the domain operation (all business rules live in the aggregate)
4. Save the contract
5. Drain the contract's events into the event sink

Transaction boundaries belong to the caller: the sink writes into the same
unit of work as the repository, and the caller commits afterwards.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List

from debt_settlement.application.commands import (
    OpenContractCommand,
    RollbackDebtCommand,
    SettleDebtCommand,
)
from debt_settlement.domain.contract import DebtContract
from debt_settlement.domain.events import DomainEvent, event_payload
from debt_settlement.domain.exceptions import ContractAlreadyExistsError, ContractNotFoundError
from debt_settlement.domain.ports import AllocationLookup, DebtContractRepository, EventSink
from debt_settlement.domain.values import Money, Period
from debt_settlement.infrastructure.observability.metrics import (
    record_events,
    record_rollback_outcome,
    record_settlement_outcome,
)


@dataclass
class SettlementResult:
    settled: bool
    contract: DebtContract | None = None


@dataclass
class RollbackResult:
    rolled_back: Money
    contract: DebtContract | None = None


class DebtSettlementService:
    """Settlement and rollback use cases for debt contracts"""

    def __init__(
        self,
        contracts: DebtContractRepository,
        allocations: AllocationLookup,
        event_sink: EventSink,
    ):
        self.contracts = contracts
        self.allocations = allocations
        self.event_sink = event_sink

    def open_contract(self, command: OpenContractCommand) -> DebtContract:
        """Create a contract and register its plans; one contract per case entrustment"""
        if self.contracts.find_by_case_entrust_id(command.case_entrust_id) is not None:
            raise ContractAlreadyExistsError(
                f"Contract already exists for case entrustment {command.case_entrust_id}"
            )

        contract = DebtContract(
            case_entrust_id=command.case_entrust_id,
            member_user_id=command.member_user_id,
            total_amount=Money.of_major(command.total_amount),
        )
        for period, due_amount in command.plans:
            contract.add_repayment_plan(Period.parse(period), Money.of_major(due_amount))

        self.contracts.save(contract)
        logging.info(
            "Debt contract opened",
            extra={
                "contract_id": contract.id,
                "case_entrust_id": contract.case_entrust_id,
                "member_user_id": contract.member_user_id,
                "plan_count": len(contract.repayment_plans),
            },
        )
        return contract

    def add_repayment_plan(self, contract_id: int, period: str, due_amount: Decimal) -> DebtContract:
        contract = self.get_contract(contract_id)
        contract.add_repayment_plan(Period.parse(period), Money.of_major(due_amount))
        self.contracts.save(contract)
        return contract

    def get_contract(self, contract_id: int) -> DebtContract:
        contract = self.contracts.find_by_id(contract_id)
        if contract is None:
            raise ContractNotFoundError(f"Debt contract {contract_id} not found")
        return contract

    def settle_debt(self, command: SettleDebtCommand) -> SettlementResult:
        """
        Credit the order's supplier allocation against the member's contract.

        Returns settled=False (never raises) when the order has no allocation,
        the member has no contract, the order's period has no plan, or the
        period is already fully paid.
        """
        order_identity = command.order_identity()
        context = {
            "order_number": command.order_number,
            "order_detail_id": command.order_detail_id,
            "member_user_id": command.member_user_id,
        }
        logging.info("Settlement started", extra=context)

        allocated = self.allocations.allocated_amount(order_identity)
        if allocated.is_zero():
            logging.warning("No allocation found for order, settlement skipped", extra=context)
            record_settlement_outcome("skipped")
            return SettlementResult(settled=False)

        contract = self.contracts.find_by_member_user_id(command.member_user_id)
        if contract is None:
            logging.warning("No debt contract for member, settlement skipped", extra=context)
            record_settlement_outcome("skipped")
            return SettlementResult(settled=False)

        settled = contract.settle_debt(order_identity, allocated, command.order_created_on)

        self.contracts.save(contract)
        events = self._publish(contract)

        if not settled:
            if not events:
                record_settlement_outcome("absorbed")
            logging.info(
                "Settlement not applied (period unmatched or already paid)",
                extra={**context, "contract_id": contract.id},
            )

        logging.info(
            "Settlement finished",
            extra={
                **context,
                "contract_id": contract.id,
                "settled": settled,
                "allocated_cents": allocated.cents,
                "paid_total_cents": contract.paid_total_amount.cents,
                "status": contract.status.value,
            },
        )
        return SettlementResult(settled=settled, contract=contract)

    def rollback_debt(self, command: RollbackDebtCommand) -> RollbackResult:
        """
        Reverse the order's settlement after a refund.

        Returns Money.ZERO when the member has no contract or the order never
        settled against it.
        """
        order_identity = command.order_identity()
        refund_amount = Money.of_major(command.refund_amount)
        context = {
            "order_number": command.order_number,
            "order_detail_id": command.order_detail_id,
            "member_user_id": command.member_user_id,
            "refund_cents": refund_amount.cents,
            "refund_status": int(command.refund_status),
            "full_refund": command.is_full_refund,
        }
        logging.info("Rollback started", extra=context)

        contract = self.contracts.find_by_member_user_id(command.member_user_id)
        if contract is None:
            logging.warning("No debt contract for member, rollback skipped", extra=context)
            record_rollback_outcome("noop")
            return RollbackResult(rolled_back=Money.ZERO)

        rolled_back = contract.rollback_debt(order_identity, refund_amount)

        self.contracts.save(contract)
        events = self._publish(contract)

        if events:
            record_rollback_outcome(contract.status.value)
        else:
            record_rollback_outcome("noop")
            logging.info(
                "Rollback not applied (order has no settlement)",
                extra={**context, "contract_id": contract.id},
            )

        logging.info(
            "Rollback finished",
            extra={
                **context,
                "contract_id": contract.id,
                "rolled_back_cents": rolled_back.cents,
                "paid_total_cents": contract.paid_total_amount.cents,
                "status": contract.status.value,
            },
        )
        return RollbackResult(rolled_back=rolled_back, contract=contract)

    def _publish(self, contract: DebtContract) -> List[DomainEvent]:
        events = contract.drain_domain_events()
        if not events:
            return events

        self.event_sink.publish(events)
        record_events(events)
        for event in events:
            logging.debug("Domain event published", extra={"event": event_payload(event)})
        return events
