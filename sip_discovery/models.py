from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional

NATIVE_ASSET = "0x0000000000000000000000000000000000000000"


# ----------------------
# Plans
# ----------------------

@dataclass(frozen=True)
class Plan:
    plan_key: str
    asset_address: str
    total_amount: int            # smallest unit (wei for the native asset)
    amount_per_interval: int
    frequency_seconds: int
    next_execution_time: int     # unix seconds
    maturity_time: int           # unix seconds
    destination_address: str
    executed_amount: int
    active: bool

    def __post_init__(self):
        if self.total_amount < 0 or self.amount_per_interval < 0:
            raise ValueError(f"negative amount in plan {self.plan_key!r}")
        if not 0 <= self.executed_amount <= self.total_amount:
            raise ValueError(
                f"plan {self.plan_key!r}: executed {self.executed_amount} outside [0, {self.total_amount}]"
            )

    @property
    def is_native(self) -> bool:
        return self.asset_address.lower() == NATIVE_ASSET

    @property
    def remaining_amount(self) -> int:
        return self.total_amount - self.executed_amount


class LookupStatus(Enum):
    RESOLVED_ACTIVE = "resolved_active"
    RESOLVED_INACTIVE = "resolved_inactive"
    NOT_FOUND = "not_found"
    TRANSPORT_ERROR = "transport_error"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class LookupOutcome:
    """Result of one (owner, plan_key) point lookup. `plan` is set only when resolved."""
    plan_key: str
    status: LookupStatus
    plan: Optional[Plan] = None
    error: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return self.status in (LookupStatus.RESOLVED_ACTIVE, LookupStatus.RESOLVED_INACTIVE)


# ----------------------
# Evidence sources
# ----------------------

@dataclass(frozen=True)
class PlanCreatedEvent:
    plan_key: str
    owner: str
    block_number: int
    log_index: int
    tx_hash: str
    total_amount: int
    interval_amount: int


@dataclass(frozen=True)
class TxRecord:
    tx_id: str
    method_id: str          # 4-byte selector tag, "0x"-prefixed hex
    call_data: bytes        # full input including the selector, may be empty if not hydrated
    value: int
    timestamp: str
    status: bool


@dataclass(frozen=True)
class DecodedKey:
    plan_key: str
    tx_id: str


# ----------------------
# Run reports
# ----------------------

@dataclass
class DiscoveryReport:
    owner: str
    plans: List[Plan]
    new_keys: List[str] = field(default_factory=list)
    transport_errors: int = 0
    failed_windows: int = 0
    skipped_transactions: int = 0
    history_available: bool = True

    @property
    def plan_keys(self) -> List[str]:
        return [p.plan_key for p in self.plans]
