"""
Prometheus instrumentation for the staking ledger.

Helper functions are safe to call from the operation path: they never raise
for non-positive amounts and only touch in-process collectors.
"""

from __future__ import annotations

from prometheus_client import Counter, Gauge

ledger_operations = Counter(
    "stakevault_operations_total",
    "Staking ledger operations by name and outcome",
    ["operation", "outcome"],
)

tokens_staked = Counter("stakevault_tokens_staked_total", "Principal deposited into the pool")

rewards_paid = Counter("stakevault_rewards_paid_total", "Rewards paid out of the custody account")

principal_returned = Counter(
    "stakevault_principal_returned_total", "Principal returned to users on unstake"
)

total_staked_gauge = Gauge("stakevault_total_staked", "Principal currently locked in open stakes")


def record_operation(operation: str, outcome: str) -> None:
    ledger_operations.labels(operation=operation, outcome=outcome).inc()


def record_stake(amount: int, total_staked: int) -> None:
    if amount > 0:
        tokens_staked.inc(amount)
    total_staked_gauge.set(total_staked)


def record_reward_paid(amount: int) -> None:
    if amount > 0:
        rewards_paid.inc(amount)


def record_unstake(amount: int, total_staked: int) -> None:
    if amount > 0:
        principal_returned.inc(amount)
    total_staked_gauge.set(total_staked)
