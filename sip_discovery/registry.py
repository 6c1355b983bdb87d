"""
Local, append-only memory of plan keys per owner.

Two JSON files, both keyed by lowercase owner address:
  plan keys     {owner: {plan_key: {"creation_tx": str | None, "first_seen_at": int}}}
  creation txs  {owner: {plan_key: {"tx_hash": str, "timestamp": int}}}

They are caches, not sources of truth: a missing or corrupt file loads as empty.
Confirmed keys are never removed, a finalized plan stays a historical fact.
"""
from __future__ import annotations

import json
import logging
import pathlib
import time
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


def _norm(owner: str) -> str:
    return owner.lower()


class _JsonStore:
    def __init__(self, path: str | None):
        self.path = path
        self._data: Dict[str, Dict[str, dict]] = {}
        self._dirty = False

    def load(self):
        self._data = {}
        if not self.path:
            return self
        p = pathlib.Path(self.path)
        if not p.exists():
            return self
        try:
            raw = json.loads(p.read_text())
            if isinstance(raw, dict):
                self._data = {_norm(k): dict(v) for k, v in raw.items() if isinstance(v, dict)}
        except (OSError, ValueError) as e:
            logger.warning("Ignoring unreadable cache %s: %s", self.path, e)
        return self

    def save(self):
        if not self.path or not self._dirty:
            return
        p = pathlib.Path(self.path)
        try:
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text(json.dumps(self._data, indent=1, sort_keys=True))
            self._dirty = False
        except OSError as e:
            logger.warning("Failed to save cache %s: %s", self.path, e)


class PlanKeyRegistry(_JsonStore):
    def keys(self, owner: str) -> List[str]:
        entries = self._data.get(_norm(owner), {})
        return sorted(entries, key=lambda k: (entries[k].get("first_seen_at", 0), k))

    def contains(self, owner: str, plan_key: str) -> bool:
        return plan_key in self._data.get(_norm(owner), {})

    def creation_tx(self, owner: str, plan_key: str) -> Optional[str]:
        return self._data.get(_norm(owner), {}).get(plan_key, {}).get("creation_tx")

    def confirm(self, owner: str, plan_key: str, creation_tx: str | None = None,
                now: float | None = None) -> bool:
        """Record a key. Returns True if it was new for this owner."""
        entries = self._data.setdefault(_norm(owner), {})
        entry = entries.get(plan_key)
        if entry is None:
            entries[plan_key] = {
                "creation_tx": creation_tx,
                "first_seen_at": int(time.time() if now is None else now),
            }
            self._dirty = True
            return True
        if creation_tx and not entry.get("creation_tx"):
            entry["creation_tx"] = creation_tx
            self._dirty = True
        return False


class CreationTxIndex(_JsonStore):
    """owner -> plan_key -> creation tx, only used to link to the explorer."""

    def get(self, owner: str, plan_key: str) -> Optional[str]:
        return self._data.get(_norm(owner), {}).get(plan_key, {}).get("tx_hash")

    def record(self, owner: str, plan_key: str, tx_hash: str, now: float | None = None) -> None:
        entries = self._data.setdefault(_norm(owner), {})
        if plan_key in entries:
            return
        entries[plan_key] = {"tx_hash": tx_hash, "timestamp": int(time.time() if now is None else now)}
        self._dirty = True
