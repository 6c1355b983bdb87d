"""
Candidate plan keys for an owner, built from the front end's naming convention
`sip_<last 6 chars of checksummed owner>_<unix seconds>`.

Known limitation: a key is only rediscovered here if the plan was created at
one of the probed instants. Plans created at any other second are invisible to
this strategy and have to come from event replay or transaction history.
"""
from __future__ import annotations

import time
from typing import Iterable, List, Optional

from web3 import Web3

DEFAULT_PLAN_KEY = "default"
KEY_PREFIX = "sip"

SECONDS_PER_DAY = 24 * 60 * 60
SECONDS_PER_HOUR = 60 * 60


def owner_fingerprint(owner: str) -> str:
    if Web3.is_address(owner):
        owner = Web3.to_checksum_address(owner)
    return owner[-6:]


def new_plan_key(owner: str, now: Optional[float] = None) -> str:
    """Key a front end would pick for a plan created at `now`."""
    if now is None:
        now = time.time()
    return f"{KEY_PREFIX}_{owner_fingerprint(owner)}_{int(now)}"


def generate_candidate_keys(
    owner: str,
    now: float,
    days: int = 7,
    hour_step: int = 4,
    max_candidates: int = 30,
) -> List[str]:
    """
    Deterministic for a fixed (owner, now). Always starts with the default key
    and never returns more than `max_candidates` keys.
    """
    keys = [DEFAULT_PLAN_KEY]
    seen = set(keys)
    if hour_step <= 0:
        return keys

    for day in range(max(days, 0)):
        day_start = now - day * SECONDS_PER_DAY
        for hours in range(0, 24, hour_step):
            key = new_plan_key(owner, day_start - hours * SECONDS_PER_HOUR)
            if key not in seen:
                seen.add(key)
                keys.append(key)

    return keys[:max(max_candidates, 1)]


def merge_candidate_lists(*lists: Iterable[str]) -> List[str]:
    """Concatenate key lists, dropping repeats but keeping first-seen order."""
    out: List[str] = []
    seen = set()
    for keys in lists:
        for key in keys:
            if key not in seen:
                seen.add(key)
                out.append(key)
    return out
