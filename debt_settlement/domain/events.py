"""
Domain events raised by the DebtContract aggregate.

The set is closed: DebtSettled, DebtRolledBack, RepaymentPlanNotMatched and
ContractCompleted share only the event_id / occurred_on envelope. Sinks
dispatch on the concrete type with a match statement (see event_payload).
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Union

from debt_settlement.domain.values import Money, OrderIdentity, Period


def _new_event_id() -> str:
    return str(uuid.uuid4())


@dataclass(frozen=True, kw_only=True)
class _EventEnvelope:
    event_id: str = field(default_factory=_new_event_id)
    occurred_on: datetime = field(default_factory=datetime.now)

    @property
    def event_type(self) -> str:
        return type(self).__name__


@dataclass(frozen=True, kw_only=True)
class DebtSettled(_EventEnvelope):
    """An order's allocation was credited against a period"""

    contract_id: int | None
    order_identity: OrderIdentity
    period: Period
    settled_amount: Money
    total_paid_amount: Money


@dataclass(frozen=True, kw_only=True)
class DebtRolledBack(_EventEnvelope):
    """A refund reversed some or all of an order's settlement"""

    contract_id: int | None
    order_identity: OrderIdentity
    rolled_back_amount: Money
    total_paid_amount: Money


@dataclass(frozen=True, kw_only=True)
class RepaymentPlanNotMatched(_EventEnvelope):
    """No plan exists for the period inferred from the order date; nothing was credited"""

    contract_id: int | None
    order_identity: OrderIdentity
    period: Period
    amount: Money


@dataclass(frozen=True, kw_only=True)
class ContractCompleted(_EventEnvelope):
    """Every repayment plan of the contract is fully paid"""

    contract_id: int | None
    final_paid_amount: Money


DomainEvent = Union[DebtSettled, DebtRolledBack, RepaymentPlanNotMatched, ContractCompleted]


def _order_fields(order_identity: OrderIdentity) -> Dict[str, Any]:
    return {
        "order_number": order_identity.order_number,
        "order_detail_id": order_identity.line_item_id,
    }


def event_payload(event: DomainEvent) -> Dict[str, Any]:
    """Serialize an event to a JSON-safe dict (amounts in cents, periods as YYYY-MM)"""
    payload: Dict[str, Any] = {
        "event_id": event.event_id,
        "event_type": event.event_type,
        "occurred_on": event.occurred_on.isoformat(),
        "contract_id": event.contract_id,
    }

    match event:
        case DebtSettled():
            payload.update(_order_fields(event.order_identity))
            payload["period"] = str(event.period)
            payload["settled_cents"] = event.settled_amount.cents
            payload["total_paid_cents"] = event.total_paid_amount.cents
        case DebtRolledBack():
            payload.update(_order_fields(event.order_identity))
            payload["rolled_back_cents"] = event.rolled_back_amount.cents
            payload["total_paid_cents"] = event.total_paid_amount.cents
        case RepaymentPlanNotMatched():
            payload.update(_order_fields(event.order_identity))
            payload["period"] = str(event.period)
            payload["amount_cents"] = event.amount.cents
        case ContractCompleted():
            payload["final_paid_cents"] = event.final_paid_amount.cents
        case _:
            raise TypeError(f"Unknown domain event: {event!r}")

    return payload
