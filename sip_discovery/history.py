"""
The owner's past transactions to the plan contract, from an
external indexer (Routescan-style `/transactions` endpoint).

The indexer list does not always carry call data, so create-plan candidates
are hydrated with `eth_getTransactionByHash`. Hydration failures drop only the
affected transaction.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from .contract import PlanContract
from .http_helper import get_json_with_retries
from .models import TxRecord
from .rpc import TRANSPORT_ERRORS

logger = logging.getLogger(__name__)


@dataclass
class HistoryResult:
    transactions: List[TxRecord] = field(default_factory=list)
    available: bool = True
    hydration_failures: int = 0


def _parse_status(raw) -> bool:
    if isinstance(raw, bool):
        return raw
    if isinstance(raw, str):
        return raw.lower() in ("true", "1", "0x1", "success")
    return raw == 1


def _parse_value(raw) -> int:
    if raw in (None, ""):
        return 0
    if isinstance(raw, str) and raw.startswith("0x"):
        return int(raw, 16)
    return int(raw)


def parse_item(item: dict, call_data: Optional[bytes] = None) -> TxRecord:
    if call_data is None:
        raw_input = item.get("input") or ""
        call_data = bytes.fromhex(raw_input.removeprefix("0x"))
    return TxRecord(
        tx_id=item["txHash"],
        method_id=(item.get("methodId") or "").lower(),
        call_data=call_data,
        value=_parse_value(item.get("value")),
        timestamp=str(item.get("timestamp", "")),
        status=_parse_status(item.get("status")),
    )


class TransactionHistory:
    def __init__(self, api_url: str, contract: PlanContract, create_selector: str,
                 ecosystem: str = "avalanche", limit: int = 100):
        self.api_url = api_url
        self.contract = contract
        self.create_selector = create_selector.lower()
        self.ecosystem = ecosystem
        self.limit = limit

    def _needs_input(self, item: dict) -> bool:
        return (
            str(item.get("methodId") or "").lower() == self.create_selector
            and _parse_status(item.get("status"))
            and not item.get("input")
        )

    def fetch(self, owner: str) -> HistoryResult:
        params = {
            "ecosystem": self.ecosystem,
            "fromAddresses": owner,
            "toAddresses": self.contract.address,
            "sort": "desc",
            "limit": self.limit,
            "count": "true",
        }
        data = get_json_with_retries(self.api_url, params=params)
        if not isinstance(data, dict):
            logger.warning("Transaction history unavailable for %s", owner)
            return HistoryResult(available=False)

        items = data.get("items") or []
        if not isinstance(items, list):
            logger.warning("Unexpected history payload for %s: items is %s", owner, type(items).__name__)
            items = []
        result = HistoryResult()
        for item in items:
            if not isinstance(item, dict) or "txHash" not in item:
                logger.debug("Skipping history item without a tx hash: %r", item)
                continue
            call_data = None
            if self._needs_input(item):
                try:
                    call_data = self.contract.get_transaction_input(item["txHash"])
                except TRANSPORT_ERRORS + (ValueError,) as e:
                    logger.warning("Failed to load input of tx %s: %s", item["txHash"], e)
                    result.hydration_failures += 1
                    continue
            try:
                result.transactions.append(parse_item(item, call_data))
            except (ValueError, TypeError, AttributeError) as e:
                logger.warning("Unparseable history item %s: %s", item.get("txHash"), e)
                result.hydration_failures += 1

        logger.info("Loaded %d transactions for %s from history", len(result.transactions), owner)
        return result
