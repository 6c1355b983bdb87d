from __future__ import annotations

from decimal import Decimal
from typing import Iterable, Optional

from web3 import Web3

from .models import Plan

SECONDS_PER_DAY = 24 * 3600


def explorer_link(base_url: str, kind: str, value: str) -> str:
    """Explorer URL for a tx / address / token; unknown kinds get the explorer root."""
    if kind not in ("tx", "address", "token"):
        return base_url
    return f"{base_url}/{kind}/{value}"


def summarize_plan(plan: Plan, now: float, explorer_url: str, contract_address: str,
                   creation_tx: Optional[str] = None) -> dict:
    """Display-ready view of one plan. Amounts are in ether units."""
    progress = 0.0
    if plan.total_amount:
        progress = plan.executed_amount / plan.total_amount * 100
    return {
        "plan_key": plan.plan_key,
        "total_amount": Web3.from_wei(plan.total_amount, "ether"),
        "amount_per_interval": Web3.from_wei(plan.amount_per_interval, "ether"),
        "executed_amount": Web3.from_wei(plan.executed_amount, "ether"),
        "remaining_amount": Web3.from_wei(plan.remaining_amount, "ether"),
        "next_execution": int(plan.next_execution_time),
        "maturity": int(plan.maturity_time),
        "frequency_seconds": plan.frequency_seconds,
        "frequency_days": plan.frequency_seconds // SECONDS_PER_DAY,
        "is_native": plan.is_native,
        "active": plan.active,
        "progress": progress,
        "can_execute": now >= plan.next_execution_time,
        "can_finalize": now >= plan.maturity_time,
        "contract_link": explorer_link(explorer_url, "address", contract_address),
        "creation_tx_link": explorer_link(explorer_url, "tx", creation_tx) if creation_tx else None,
    }


def portfolio_totals(plans: Iterable[Plan]) -> dict:
    """Sum total and executed amounts (ether) across active plans."""
    total = executed = 0
    for plan in plans:
        if plan.active:
            total += plan.total_amount
            executed += plan.executed_amount
    return {
        "total": Decimal(Web3.from_wei(total, "ether")),
        "executed": Decimal(Web3.from_wei(executed, "ether")),
    }
