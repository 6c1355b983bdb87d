"""Pytest configuration and shared fakes."""

import threading
from typing import Dict, List, Optional

import pytest
from eth_abi import encode
from web3 import Web3

from sip_discovery.contract import PLAN_CREATED_TOPIC0, owner_topic
from sip_discovery.models import LookupOutcome, LookupStatus, Plan, TxRecord
from sip_discovery.rpc import RpcError

OWNER = "0x5B38Da6a701c568545dCfcB03FcB875f56beddC4"
OTHER_OWNER = "0xAb8483F64d9C6d1EcF9b849Ae677dD3315835cb2"
CONTRACT = Web3.to_checksum_address("0xd8540a08f770baa3b66c4d43728cdbdd1d7a9c3b")
CREATE_SELECTOR = "0xe1dc1c04"
DEST = "0x4B20993Bc481177ec7E8f571ceCaE8A9e22C02db"


def make_plan(key: str, active: bool = True, total: int = 10**18, executed: int = 0) -> Plan:
    return Plan(
        plan_key=key,
        asset_address="0x0000000000000000000000000000000000000000",
        total_amount=total,
        amount_per_interval=total // 10,
        frequency_seconds=86400,
        next_execution_time=1_700_086_400,
        maturity_time=1_702_678_400,
        destination_address=DEST,
        executed_amount=executed,
        active=active,
    )


def create_call_data(plan_key: str, selector: str = CREATE_SELECTOR) -> bytes:
    args = encode(
        ["string", "uint256", "uint256", "uint256", "address"],
        [plan_key, 10**17, 86400, 1_702_678_400, DEST],
    )
    return bytes.fromhex(selector[2:]) + args


def make_tx(tx_id: str, call_data: bytes, method_id: str = CREATE_SELECTOR, status: bool = True) -> TxRecord:
    return TxRecord(tx_id=tx_id, method_id=method_id, call_data=call_data,
                    value=10**18, timestamp="2023-11-14T22:13:20Z", status=status)


def make_log(owner: str, plan_key: str, block: int, log_index: int = 0, tx_hash: str = "0xabc") -> dict:
    data = encode(["string", "uint256", "uint256"], [plan_key, 10**18, 10**17])
    return {
        "address": CONTRACT,
        "topics": [PLAN_CREATED_TOPIC0, owner_topic(owner)],
        "data": Web3.to_hex(data),
        "blockNumber": hex(block),
        "logIndex": hex(log_index),
        "transactionHash": tx_hash,
    }


class FakeContract:
    """In-memory stand-in for PlanContract."""

    def __init__(self, plans: Optional[Dict[str, Plan]] = None, head: int = 10_000,
                 logs: Optional[List[dict]] = None, failing_keys=(), failing_windows=(),
                 head_fails: bool = False, inputs: Optional[Dict[str, bytes]] = None):
        self.address = CONTRACT
        self.plans = plans or {}
        self.head = head
        self.logs = logs or []
        self.failing_keys = set(failing_keys)
        self.failing_windows = set(failing_windows)
        self.head_fails = head_fails
        self.inputs = inputs or {}
        self.lookups: List[str] = []
        self.windows: List[tuple] = []
        self._lock = threading.Lock()

    def get_plan(self, owner: str, plan_key: str) -> LookupOutcome:
        with self._lock:
            self.lookups.append(plan_key)
        if plan_key in self.failing_keys:
            return LookupOutcome(plan_key, LookupStatus.TRANSPORT_ERROR, error="connection reset")
        plan = self.plans.get(plan_key)
        if plan is None:
            return LookupOutcome(plan_key, LookupStatus.NOT_FOUND)
        status = LookupStatus.RESOLVED_ACTIVE if plan.active else LookupStatus.RESOLVED_INACTIVE
        return LookupOutcome(plan_key, status, plan=plan)

    def block_number(self) -> int:
        if self.head_fails:
            raise RpcError(-32603, "internal error")
        return self.head

    def get_plan_created_logs(self, owner: str, from_block: int, to_block: int) -> List[dict]:
        self.windows.append((from_block, to_block))
        if (from_block, to_block) in self.failing_windows:
            raise RpcError(-32005, "query timeout")
        return [
            lg for lg in self.logs
            if from_block <= int(lg["blockNumber"], 16) <= to_block
            and lg["topics"][1] == owner_topic(owner)
        ]

    def get_transaction_input(self, tx_hash: str) -> bytes:
        if tx_hash not in self.inputs:
            raise RpcError(-32000, "transaction not found")
        return self.inputs[tx_hash]


class FakeHistory:
    def __init__(self, transactions=(), available: bool = True):
        self.transactions = list(transactions)
        self.available = available

    def fetch(self, owner):
        from sip_discovery.history import HistoryResult
        return HistoryResult(transactions=list(self.transactions), available=self.available)


@pytest.fixture
def registry_paths(tmp_path):
    return str(tmp_path / "plan_keys.json"), str(tmp_path / "creation_txs.json")
