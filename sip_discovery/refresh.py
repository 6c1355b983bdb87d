"""
Keeps one owner's discovery result fresh.

Every owner change or external trigger (a new block) bumps a generation
counter. A run remembers the generation it started under; if the counter has
moved on by the time it finishes, its result is dropped and it does not touch
the registry. In-flight calls are never aborted, only ignored.
"""
from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional

from .models import DiscoveryReport
from .pipeline import DiscoveryPipeline, DiscoveryUnavailable
from .rpc import TRANSPORT_ERRORS

logger = logging.getLogger(__name__)


class RefreshState(Enum):
    IDLE = "idle"
    RUNNING = "running"


class RefreshController:
    def __init__(
        self,
        pipeline: DiscoveryPipeline,
        on_result: Optional[Callable[[DiscoveryReport], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
    ):
        self.pipeline = pipeline
        self.on_result = on_result
        self.on_error = on_error
        self.owner: Optional[str] = None
        self.generation = 0
        self.last_result: Optional[DiscoveryReport] = None
        self.last_error: Optional[Exception] = None
        self.discarded = 0
        self._running = 0
        self._lock = threading.Lock()

    @property
    def state(self) -> RefreshState:
        return RefreshState.RUNNING if self._running else RefreshState.IDLE

    def set_owner(self, owner: Optional[str]) -> int:
        with self._lock:
            if owner != self.owner:
                self.owner = owner
                self.generation += 1
                self.last_result = None
                self.last_error = None
            return self.generation

    def trigger(self) -> int:
        with self._lock:
            self.generation += 1
            return self.generation

    def _is_current(self, generation: int, owner: str) -> bool:
        return self.generation == generation and self.owner == owner

    def refresh(self) -> Optional[DiscoveryReport]:
        """Run discovery now for the current owner. Returns the published report, if any."""
        with self._lock:
            owner = self.owner
            generation = self.generation
            if owner is None:
                return None
            self._running += 1

        try:
            report = self.pipeline.run(owner, is_current=lambda: self._is_current(generation, owner))
        except DiscoveryUnavailable as e:
            with self._lock:
                if not self._is_current(generation, owner):
                    self.discarded += 1
                    return None
                self.last_error = e
            logger.error("Discovery failed for %s, keeping last result: %s", owner, e)
            if self.on_error:
                self.on_error(e)
            return None
        finally:
            with self._lock:
                self._running -= 1

        with self._lock:
            if report is None or not self._is_current(generation, owner):
                self.discarded += 1
                logger.debug("Dropped stale result of generation %d", generation)
                return None
            self.last_result = report
            self.last_error = None
        if self.on_result:
            self.on_result(report)
        return report

    def submit(self) -> threading.Thread:
        """Run `refresh` as a background task tagged with the current generation."""
        with self._lock:
            generation = self.generation
        t = threading.Thread(target=self.refresh, name=f"discovery-gen{generation}", daemon=True)
        t.start()
        return t

    def watch(self, block_number: Callable[[], int], poll_interval: float = 5.0,
              max_polls: Optional[int] = None, sleep: Callable[[float], None] = time.sleep) -> None:
        """Poll the head block and refresh on every new one."""
        last_block = None
        polls = 0
        while max_polls is None or polls < max_polls:
            polls += 1
            try:
                block = block_number()
            except TRANSPORT_ERRORS + (ValueError, TypeError) as e:
                logger.warning("Head block poll failed: %s", e)
                block = None
            if block is not None and block != last_block:
                last_block = block
                self.trigger()
                self.refresh()
            if max_polls is None or polls < max_polls:
                sleep(poll_interval)
