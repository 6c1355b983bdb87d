"""
Resolve plan keys to Plan records with bounded parallel point lookups.

Keys are processed in fixed-width batches: every lookup of a batch runs
concurrently, the batch is awaited as a whole, then the fetcher pauses before
the next batch. At most `batch_size` lookups are ever in flight. Nothing is
retried inside a run; the next refresh is the retry.
"""
from __future__ import annotations

import logging
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Callable, List, Sequence

from .models import LookupOutcome, LookupStatus, Plan
from .rpc import TRANSPORT_ERRORS

logger = logging.getLogger(__name__)

Lookup = Callable[[str, str], LookupOutcome]


@dataclass
class FetchResult:
    outcomes: List[LookupOutcome] = field(default_factory=list)

    def _with(self, *statuses: LookupStatus) -> List[LookupOutcome]:
        return [o for o in self.outcomes if o.status in statuses]

    @property
    def plans(self) -> List[Plan]:
        """Active plans, in key order."""
        return [o.plan for o in self._with(LookupStatus.RESOLVED_ACTIVE)]

    @property
    def resolved_keys(self) -> List[str]:
        return [o.plan_key for o in self.outcomes if o.resolved]

    @property
    def transport_errors(self) -> List[str]:
        return [o.plan_key for o in self._with(LookupStatus.TRANSPORT_ERROR)]

    @property
    def reachable(self) -> bool:
        """True if at least one lookup got an answer from the node."""
        return any(o.status != LookupStatus.TRANSPORT_ERROR for o in self.outcomes)

    def extend(self, other: "FetchResult") -> None:
        self.outcomes.extend(other.outcomes)


class BatchedFetcher:
    def __init__(self, lookup: Lookup, batch_size: int = 3, batch_delay: float = 0.3,
                 sleep: Callable[[float], None] = time.sleep):
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self.lookup = lookup
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self._sleep = sleep

    def _lookup_one(self, owner: str, plan_key: str) -> LookupOutcome:
        try:
            return self.lookup(owner, plan_key)
        except TRANSPORT_ERRORS as e:
            return LookupOutcome(plan_key, LookupStatus.TRANSPORT_ERROR, error=str(e))

    def fetch(self, owner: str, plan_keys: Sequence[str], follows_batch: bool = False) -> FetchResult:
        """
        `follows_batch` means another batch just finished (an earlier fetch in
        the same run), so the first batch here waits out the pause too.
        """
        result = FetchResult()
        if not plan_keys:
            return result

        batches = [plan_keys[i:i + self.batch_size] for i in range(0, len(plan_keys), self.batch_size)]
        logger.debug("Looking up %d keys for %s in %d batches", len(plan_keys), owner, len(batches))

        with ThreadPoolExecutor(max_workers=self.batch_size) as pool:
            for n, batch in enumerate(batches):
                if n == 0 and follows_batch and self.batch_delay:
                    self._sleep(self.batch_delay)
                futures = [pool.submit(self._lookup_one, owner, key) for key in batch]
                for fut in futures:
                    outcome = fut.result()
                    self._log_outcome(owner, outcome)
                    result.outcomes.append(outcome)
                if self.batch_delay and n < len(batches) - 1:
                    self._sleep(self.batch_delay)

        logger.info(
            "Resolved %d/%d keys for %s (%d active, %d transport errors)",
            len(result.resolved_keys), len(plan_keys), owner,
            len(result.plans), len(result.transport_errors),
        )
        return result

    @staticmethod
    def _log_outcome(owner: str, outcome: LookupOutcome) -> None:
        if outcome.status == LookupStatus.TRANSPORT_ERROR:
            logger.warning("Lookup of %r for %s failed: %s", outcome.plan_key, owner, outcome.error)
        elif outcome.status == LookupStatus.MALFORMED:
            logger.warning("Undecodable plan %r for %s: %s", outcome.plan_key, owner, outcome.error)
        else:
            logger.debug("Plan %r for %s: %s", outcome.plan_key, owner, outcome.status.value)
