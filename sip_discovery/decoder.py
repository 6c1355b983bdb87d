"""
Recover plan keys from the owner's createPlan transactions.

createPlanWithNative(string pool, uint256, uint256, uint256, address)
  input = selector(4) + head(5 * 32) + tail
The plan key is the first (dynamic) argument: head word 0 is the offset of its
tail segment, the segment starts with a 32-byte length followed by the bytes.
"""
from __future__ import annotations

import logging
from typing import Iterable, List, Tuple

from .models import DecodedKey, TxRecord

logger = logging.getLogger(__name__)

WORD = 32
SELECTOR_LEN = 4


def decode_first_string_arg(call_data: bytes) -> str:
    """
    Decode the first ABI argument of a call as a string.
    Raises ValueError on any out-of-bounds offset/length or invalid UTF-8.
    """
    params = call_data[SELECTOR_LEN:]
    if len(call_data) < SELECTOR_LEN or len(params) < WORD:
        raise ValueError("call data too short")

    offset = int.from_bytes(params[0:WORD], "big")
    if offset + WORD > len(params):
        raise ValueError("string offset out of bounds")

    length = int.from_bytes(params[offset:offset + WORD], "big")
    start = offset + WORD
    end = start + length
    if end > len(params):
        raise ValueError(f"string length {length} runs past end of call data")

    return params[start:end].decode("utf-8")


def decode_plan_keys(transactions: Iterable[TxRecord], create_selector: str) -> Tuple[List[DecodedKey], int]:
    """
    Returns (decoded keys, number of create transactions skipped as malformed).
    Only successful transactions tagged with `create_selector` are considered;
    execute / finalize calls are ignored entirely. A key seen twice keeps its
    first transaction.
    """
    selector = create_selector.lower()
    out: List[DecodedKey] = []
    seen = set()
    skipped = 0

    for tx in transactions:
        if (tx.method_id or "").lower() != selector or tx.status is not True:
            continue
        if tx.call_data[:SELECTOR_LEN].hex() != selector.removeprefix("0x"):
            logger.warning("Tx %s tagged as create but input selector differs, skipping", tx.tx_id)
            skipped += 1
            continue
        try:
            key = decode_first_string_arg(tx.call_data)
        except ValueError as e:
            logger.warning("Could not decode plan key from tx %s: %s", tx.tx_id, e)
            skipped += 1
            continue
        if key in seen:
            continue
        seen.add(key)
        out.append(DecodedKey(plan_key=key, tx_id=tx.tx_id))

    return out, skipped
