"""Unit tests for domain event serialization"""

import json
import pytest
from debt_settlement.domain.events import (
    ContractCompleted,
    DebtRolledBack,
    DebtSettled,
    RepaymentPlanNotMatched,
    event_payload,
)
from debt_settlement.domain.values import Money, OrderIdentity, Period


def test_settled_payload():
    event = DebtSettled(
        contract_id=7,
        order_identity=OrderIdentity.line_item_level("SO1", 3),
        period=Period(2025, 3),
        settled_amount=Money.of_cents(50000),
        total_paid_amount=Money.of_cents(150000),
    )

    payload = event_payload(event)

    assert payload["event_type"] == "DebtSettled"
    assert payload["event_id"] == event.event_id
    assert payload["contract_id"] == 7
    assert payload["order_number"] == "SO1"
    assert payload["order_detail_id"] == 3
    assert payload["period"] == "2025-03"
    assert payload["settled_cents"] == 50000
    assert payload["total_paid_cents"] == 150000


def test_rolled_back_payload_has_no_period():
    event = DebtRolledBack(
        contract_id=7,
        order_identity=OrderIdentity.order_level("SO1"),
        rolled_back_amount=Money.of_cents(20000),
        total_paid_amount=Money.of_cents(30000),
    )

    payload = event_payload(event)

    assert payload["event_type"] == "DebtRolledBack"
    assert payload["order_detail_id"] is None
    assert payload["rolled_back_cents"] == 20000
    assert "period" not in payload


def test_unmatched_payload():
    event = RepaymentPlanNotMatched(
        contract_id=None,
        order_identity=OrderIdentity.order_level("SO1"),
        period=Period(2024, 1),
        amount=Money.of_cents(100),
    )

    payload = event_payload(event)

    assert payload["contract_id"] is None
    assert payload["period"] == "2024-01"
    assert payload["amount_cents"] == 100


def test_completed_payload():
    payload = event_payload(ContractCompleted(contract_id=1, final_paid_amount=Money.of_cents(1200000)))

    assert payload["event_type"] == "ContractCompleted"
    assert payload["final_paid_cents"] == 1200000
    assert "order_number" not in payload


def test_payload_is_json_serializable():
    event = ContractCompleted(contract_id=1, final_paid_amount=Money.of_cents(1))
    assert json.loads(json.dumps(event_payload(event)))["final_paid_cents"] == 1


def test_events_are_immutable():
    event = ContractCompleted(contract_id=1, final_paid_amount=Money.of_cents(1))
    with pytest.raises(AttributeError):
        event.contract_id = 2
