"""Prometheus metrics for settlement outcomes, rollbacks and event delivery"""

from typing import Sequence

from prometheus_client import Counter, Histogram

from debt_settlement.domain.events import (
    ContractCompleted,
    DebtRolledBack,
    DebtSettled,
    DomainEvent,
    RepaymentPlanNotMatched,
)

# Settlement metrics
settlement_counter = Counter(
    "settlement_total",
    "Settlement attempts by outcome",
    ["outcome"],  # settled | unmatched | absorbed | skipped
)

settled_cents_counter = Counter(
    "settlement_settled_cents",
    "Cents credited against repayment plans",
)

rollback_counter = Counter(
    "settlement_rollback_total",
    "Rollback attempts by outcome",
    ["outcome"],  # rolled_back | partial_back | noop
)

rolled_back_cents_counter = Counter(
    "settlement_rolled_back_cents",
    "Cents returned to outstanding debt by refunds",
)

contract_completed_counter = Counter(
    "settlement_contract_completed_total",
    "Contracts whose repayment plans are all fully paid",
)

# Webhook metrics
webhook_latency_histogram = Histogram(
    "webhook_latency_seconds",
    "Event webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

webhook_failure_counter = Counter(
    "webhook_failures_total",
    "Failed webhook deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_settlement_outcome(outcome: str) -> None:
    """Count a settlement attempt that did not produce a DebtSettled event"""
    settlement_counter.labels(outcome=outcome).inc()


def record_rollback_outcome(outcome: str) -> None:
    rollback_counter.labels(outcome=outcome).inc()


def record_events(events: Sequence[DomainEvent]) -> None:
    """Translate drained domain events into settlement metrics"""
    for event in events:
        match event:
            case DebtSettled():
                settlement_counter.labels(outcome="settled").inc()
                settled_cents_counter.inc(event.settled_amount.cents)
            case RepaymentPlanNotMatched():
                settlement_counter.labels(outcome="unmatched").inc()
            case ContractCompleted():
                contract_completed_counter.inc()
            case DebtRolledBack():
                # outcome label needs the contract status; the service records it
                rolled_back_cents_counter.inc(event.rolled_back_amount.cents)
