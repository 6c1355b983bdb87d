#!/usr/bin/env python3
"""
events.py — recover plan keys by replaying PlanCreated logs for one owner.

- Walks [to_block - lookback, to_block] in fixed windows (eth_getLogs caps the range).
- Windows are queried one after another, never concurrently.
- A failed window is recorded and skipped; the scan always covers the full range.
- Each log's data carries the plan key (string), total and per-interval amounts.
"""
from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from eth_abi.exceptions import DecodingError

from .contract import PlanContract, decode_plan_created
from .models import PlanCreatedEvent
from .rpc import TRANSPORT_ERRORS

logger = logging.getLogger(__name__)


@dataclass
class ScanResult:
    from_block: int = 0
    to_block: int = -1
    events: List[PlanCreatedEvent] = field(default_factory=list)
    failed_windows: List[Tuple[int, int, str]] = field(default_factory=list)
    windows_ok: int = 0
    error: Optional[str] = None     # set when the head block could not be read

    @property
    def plan_keys(self) -> List[str]:
        keys: List[str] = []
        for e in self.events:
            if e.plan_key not in keys:
                keys.append(e.plan_key)
        return keys

    @property
    def creation_txs(self) -> dict:
        """plan_key -> tx hash of its earliest PlanCreated log."""
        out = {}
        for e in self.events:
            out.setdefault(e.plan_key, e.tx_hash)
        return out

    @property
    def reachable(self) -> bool:
        return self.error is None and (self.windows_ok > 0 or not self.failed_windows)


def block_windows(from_block: int, to_block: int, window_size: int) -> deque:
    work = deque()
    cur = max(0, from_block)
    while cur <= to_block:
        hi = min(cur + window_size - 1, to_block)
        work.append((cur, hi))
        cur = hi + 1
    return work


class EventScanner:
    def __init__(self, contract: PlanContract, lookback_blocks: int = 500_000,
                 window_size: int = 2_000, sleep_sec: float = 0.0):
        if window_size < 1:
            raise ValueError("window_size must be >= 1")
        self.contract = contract
        self.lookback_blocks = lookback_blocks
        self.window_size = window_size
        self.sleep_sec = sleep_sec

    def scan(self, owner: str, to_block: Optional[int] = None) -> ScanResult:
        if to_block is None:
            try:
                to_block = self.contract.block_number()
            except TRANSPORT_ERRORS + (ValueError, TypeError) as e:
                logger.warning("Could not read head block, skipping event replay: %s", e)
                return ScanResult(error=str(e))

        from_block = max(0, to_block - self.lookback_blocks)
        result = ScanResult(from_block=from_block, to_block=to_block)
        work = block_windows(from_block, to_block, self.window_size)
        logger.info("Replaying PlanCreated for %s over [%d - %d] in %d windows",
                    owner, from_block, to_block, len(work))

        while work:
            a, b = work.popleft()
            try:
                logs = self.contract.get_plan_created_logs(owner, a, b)
            except TRANSPORT_ERRORS as e:
                logger.warning("  ✗ Window [%d - %d] failed: %s", a, b, e)
                result.failed_windows.append((a, b, str(e)))
            else:
                result.windows_ok += 1
                for lg in logs:
                    try:
                        evt = decode_plan_created(lg)
                    except (DecodingError, ValueError, KeyError) as e:
                        logger.warning("  Skipping undecodable PlanCreated log in block %s: %s",
                                       lg.get("blockNumber"), e)
                        continue
                    if evt.owner.lower() != owner.lower():
                        continue
                    result.events.append(evt)
                if logs:
                    logger.debug("  ✓ [%d - %d] %d logs", a, b, len(logs))
            if self.sleep_sec and work:
                time.sleep(self.sleep_sec)

        result.events.sort(key=lambda e: (e.block_number, e.log_index))
        logger.info("Event replay done: %d events, %d keys, %d failed windows",
                    len(result.events), len(result.plan_keys), len(result.failed_windows))
        return result
