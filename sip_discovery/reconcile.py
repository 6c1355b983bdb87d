from __future__ import annotations

import logging
import threading
from typing import Dict, Iterable, List, Optional

from .models import Plan
from .registry import CreationTxIndex, PlanKeyRegistry

logger = logging.getLogger(__name__)


def merge_plans(*plan_lists: Iterable[Plan]) -> List[Plan]:
    """
    One entry per plan key, first occurrence wins, inactive plans dropped.
    Lists are taken in the order given (guessed keys, events, transactions).
    """
    merged: Dict[str, Plan] = {}
    for plans in plan_lists:
        for plan in plans:
            if plan.active and plan.plan_key not in merged:
                merged[plan.plan_key] = plan
    return list(merged.values())


class Reconciler:
    """Single write point into the registries."""

    def __init__(self, registry: PlanKeyRegistry, creation_txs: Optional[CreationTxIndex] = None):
        self.registry = registry
        self.creation_txs = creation_txs
        self._lock = threading.Lock()

    def known_keys(self, owner: str) -> List[str]:
        return self.registry.keys(owner)

    def commit(self, owner: str, confirmed_keys: Iterable[str],
               tx_by_key: Optional[Dict[str, str]] = None, now: float | None = None) -> List[str]:
        """
        Register confirmed keys with their creation tx when known, persist, and
        return the keys that were not in the registry before.
        """
        tx_by_key = tx_by_key or {}
        new_keys: List[str] = []
        with self._lock:
            for key in confirmed_keys:
                tx = tx_by_key.get(key)
                if self.registry.confirm(owner, key, creation_tx=tx, now=now):
                    new_keys.append(key)
                if tx and self.creation_txs is not None:
                    self.creation_txs.record(owner, key, tx, now=now)
            self.registry.save()
            if self.creation_txs is not None:
                self.creation_txs.save()
        if new_keys:
            logger.info("Registered %d new plan keys for %s: %s", len(new_keys), owner, new_keys)
        return new_keys
