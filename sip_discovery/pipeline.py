"""
One discovery run for one owner.

  A  registry keys + guessed keys  -> point lookups
  B  PlanCreated event replay      -> point lookups
  C  transaction history decoding  -> point lookups

B and C gather their keys in background threads while A's lookups run. Their
keys are then materialized through the same fetcher, skipping keys that were
already looked up in this run. The three plan lists are merged by key, and the
registries are updated only if the run is still current.
"""
from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Optional

from web3 import Web3

from .candidates import generate_candidate_keys, merge_candidate_lists
from .decoder import decode_plan_keys
from .events import EventScanner, ScanResult
from .fetcher import BatchedFetcher, FetchResult
from .history import HistoryResult, TransactionHistory
from .models import DiscoveryReport, LookupStatus, Plan
from .reconcile import Reconciler, merge_plans

logger = logging.getLogger(__name__)


class DiscoveryUnavailable(RuntimeError):
    """No discovery strategy got a single answer from upstream."""


class DiscoveryPipeline:
    def __init__(
        self,
        fetcher: BatchedFetcher,
        scanner: EventScanner,
        reconciler: Reconciler,
        history: Optional[TransactionHistory] = None,
        create_selector: str = "0xe1dc1c04",
        candidate_days: int = 7,
        candidate_hour_step: int = 4,
        max_candidates: int = 30,
        clock: Callable[[], float] = time.time,
    ):
        self.fetcher = fetcher
        self.scanner = scanner
        self.reconciler = reconciler
        self.history = history
        self.create_selector = create_selector
        self.candidate_days = candidate_days
        self.candidate_hour_step = candidate_hour_step
        self.max_candidates = max_candidates
        self.clock = clock

    def candidate_keys(self, owner: str, now: float | None = None):
        guessed = generate_candidate_keys(
            owner, self.clock() if now is None else now,
            days=self.candidate_days, hour_step=self.candidate_hour_step,
            max_candidates=self.max_candidates,
        )
        return merge_candidate_lists(self.reconciler.known_keys(owner), guessed)

    def _history(self, owner: str) -> HistoryResult:
        if self.history is None:
            return HistoryResult(available=False)
        return self.history.fetch(owner)

    def run(self, owner: str, is_current: Callable[[], bool] = lambda: True) -> Optional[DiscoveryReport]:
        """
        Returns the report, or None when `is_current()` turned false before the
        registry commit (the run was superseded and its result is discarded).
        Raises DiscoveryUnavailable when every strategy failed at the transport level.
        """
        if not Web3.is_address(owner):
            raise ValueError(f"not an address: {owner!r}")
        now = self.clock()

        with ThreadPoolExecutor(max_workers=2) as pool:
            scan_future = pool.submit(self.scanner.scan, owner)
            history_future = pool.submit(self._history, owner)

            # A
            keys_a = self.candidate_keys(owner, now)
            fetch_a = self.fetcher.fetch(owner, keys_a)
            scan: ScanResult = scan_future.result()
            hist: HistoryResult = history_future.result()

        looked_up = set(keys_a)

        # B
        keys_b = [k for k in scan.plan_keys if k not in looked_up]
        looked_up.update(keys_b)
        fetch_b = self.fetcher.fetch(owner, keys_b, follows_batch=bool(keys_a))

        # C
        decoded, skipped = decode_plan_keys(hist.transactions, self.create_selector)
        keys_c = [d.plan_key for d in decoded if d.plan_key not in looked_up]
        fetch_c = self.fetcher.fetch(owner, keys_c, follows_batch=bool(keys_a or keys_b))

        all_fetches = FetchResult()
        for f in (fetch_a, fetch_b, fetch_c):
            all_fetches.extend(f)

        # plans only ever come from the node
        if not (all_fetches.reachable or scan.reachable):
            raise DiscoveryUnavailable(
                f"plan store unreachable for {owner}: "
                f"{len(all_fetches.transport_errors)} failed lookups, scan error={scan.error}"
            )

        merged = merge_plans(fetch_a.plans, fetch_b.plans, fetch_c.plans)

        if not is_current():
            logger.info("Discarding superseded discovery run for %s", owner)
            return None

        tx_by_key = dict(scan.creation_txs)
        tx_by_key.update({d.plan_key: d.tx_id for d in decoded})
        confirmed = merge_candidate_lists(all_fetches.resolved_keys, [d.plan_key for d in decoded])
        new_keys = self.reconciler.commit(owner, confirmed, tx_by_key, now=now)

        report = DiscoveryReport(
            owner=owner,
            plans=merged,
            new_keys=new_keys,
            transport_errors=len(all_fetches.transport_errors),
            failed_windows=len(scan.failed_windows) + (1 if scan.error else 0),
            skipped_transactions=skipped + hist.hydration_failures,
            history_available=hist.available,
        )
        logger.info(
            "Discovered %d active plans for %s (A=%d, B=%d, C=%d keys looked up)",
            len(merged), owner, len(keys_a), len(keys_b), len(keys_c),
        )
        return report

    def check_key(self, owner: str, plan_key: str) -> Optional[Plan]:
        """Look up one user-supplied key; a plan that exists is remembered."""
        if not Web3.is_address(owner):
            raise ValueError(f"not an address: {owner!r}")
        outcome = self.fetcher.fetch(owner, [plan_key]).outcomes[0]
        if outcome.resolved:
            self.reconciler.commit(owner, [plan_key], now=self.clock())
        if outcome.status == LookupStatus.RESOLVED_ACTIVE:
            return outcome.plan
        return None
