"""
Read access to the plan contract.

The contract has no enumeration primitive: the only way to read a plan is the
point lookup `getPlan(owner, planKey)`. Everything here is read-only; the
create / execute / finalize transactions are built and signed elsewhere.
"""
from __future__ import annotations

import logging
from typing import List

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from web3 import Web3

from .models import LookupOutcome, LookupStatus, Plan, PlanCreatedEvent
from .rpc import EXECUTION_REVERTED, TRANSPORT_ERRORS, RpcError, from_hex, rpc_call, to_hex

logger = logging.getLogger(__name__)

GET_PLAN_SIGNATURE = "getPlan(address,string)"
GET_PLAN_SELECTOR = Web3.keccak(text=GET_PLAN_SIGNATURE)[:4]

# struct SIPPlan { token, totalAmount, amountPerInterval, frequency, nextExecution,
#                  maturity, destAddress, executedAmount, active }
PLAN_TUPLE_TYPES = [
    "address", "uint256", "uint256", "uint256", "uint256",
    "uint256", "address", "uint256", "bool",
]

PLAN_CREATED_SIGNATURE = "PlanCreated(address,string,uint256,uint256)"
PLAN_CREATED_TOPIC0 = Web3.to_hex(Web3.keccak(text=PLAN_CREATED_SIGNATURE))
PLAN_CREATED_DATA_TYPES = ["string", "uint256", "uint256"]

EXECUTE_PLAN_SELECTOR = Web3.to_hex(Web3.keccak(text="executeSIP(string)")[:4])
FINALIZE_PLAN_SELECTOR = Web3.to_hex(Web3.keccak(text="finalizeSIP(string)")[:4])


def owner_topic(owner: str) -> str:
    """Left-pad an address to a 32-byte indexed topic."""
    return "0x" + "0" * 24 + owner.lower().removeprefix("0x")


def _bytes_from_hex(data_hex: str | None) -> bytes:
    if not data_hex:
        return b""
    return bytes.fromhex(data_hex.removeprefix("0x"))


def encode_get_plan(owner: str, plan_key: str) -> str:
    args = encode(["address", "string"], [Web3.to_checksum_address(owner), plan_key])
    return Web3.to_hex(GET_PLAN_SELECTOR + args)


def decode_plan(plan_key: str, raw: bytes) -> Plan | None:
    """
    Decode a getPlan return blob. Returns None for the zero struct, which the
    contract hands back for keys that were never created.
    Raises DecodingError / ValueError on malformed data.
    """
    (token, total, per_interval, frequency, next_exec,
     maturity, dest, executed, active) = decode(PLAN_TUPLE_TYPES, raw)
    if total == 0 and not active:
        return None
    return Plan(
        plan_key=plan_key,
        asset_address=Web3.to_checksum_address(token),
        total_amount=int(total),
        amount_per_interval=int(per_interval),
        frequency_seconds=int(frequency),
        next_execution_time=int(next_exec),
        maturity_time=int(maturity),
        destination_address=Web3.to_checksum_address(dest),
        executed_amount=int(executed),
        active=bool(active),
    )


def decode_plan_created(log: dict) -> PlanCreatedEvent:
    topics = log.get("topics") or []
    if len(topics) < 2:
        raise ValueError("PlanCreated log without indexed owner topic")
    owner = Web3.to_checksum_address("0x" + topics[1][-40:])
    plan_key, total, interval_amount = decode(PLAN_CREATED_DATA_TYPES, _bytes_from_hex(log.get("data")))
    return PlanCreatedEvent(
        plan_key=plan_key,
        owner=owner,
        block_number=from_hex(log["blockNumber"]),
        log_index=from_hex(log.get("logIndex", "0x0")),
        tx_hash=log.get("transactionHash", ""),
        total_amount=int(total),
        interval_amount=int(interval_amount),
    )


class PlanContract:
    def __init__(self, rpc_url: str, address: str, fallback_url: str | None = None, timeout: int = 30):
        self.rpc_url = rpc_url
        self.address = Web3.to_checksum_address(address)
        self.fallback_url = fallback_url
        self.timeout = timeout

    def _call(self, method: str, params: list):
        return rpc_call(self.rpc_url, method, params, timeout=self.timeout, fallback_url=self.fallback_url)

    def get_plan(self, owner: str, plan_key: str) -> LookupOutcome:
        call = {"to": self.address, "data": encode_get_plan(owner, plan_key)}
        try:
            result = self._call("eth_call", [call, "latest"])
        except RpcError as e:
            if e.code == EXECUTION_REVERTED:
                return LookupOutcome(plan_key, LookupStatus.NOT_FOUND)
            return LookupOutcome(plan_key, LookupStatus.TRANSPORT_ERROR, error=str(e))
        except TRANSPORT_ERRORS as e:
            return LookupOutcome(plan_key, LookupStatus.TRANSPORT_ERROR, error=str(e))

        try:
            raw = _bytes_from_hex(result)
            if not raw:
                return LookupOutcome(plan_key, LookupStatus.NOT_FOUND)
            plan = decode_plan(plan_key, raw)
        except (DecodingError, ValueError, TypeError, AttributeError) as e:
            return LookupOutcome(plan_key, LookupStatus.MALFORMED, error=str(e))
        if plan is None:
            return LookupOutcome(plan_key, LookupStatus.NOT_FOUND)
        status = LookupStatus.RESOLVED_ACTIVE if plan.active else LookupStatus.RESOLVED_INACTIVE
        return LookupOutcome(plan_key, status, plan=plan)

    def block_number(self) -> int:
        return from_hex(self._call("eth_blockNumber", []))

    def get_plan_created_logs(self, owner: str, from_block: int, to_block: int) -> List[dict]:
        params = [{
            "fromBlock": to_hex(from_block),
            "toBlock": to_hex(to_block),
            "address": self.address,
            "topics": [PLAN_CREATED_TOPIC0, owner_topic(owner)],
        }]
        return self._call("eth_getLogs", params) or []

    def get_transaction_input(self, tx_hash: str) -> bytes:
        tx = self._call("eth_getTransactionByHash", [tx_hash])
        if not tx:
            raise ValueError(f"transaction {tx_hash} not found")
        return _bytes_from_hex(tx.get("input"))

    def is_deployed(self) -> bool:
        code = self._call("eth_getCode", [self.address, "latest"])
        return bool(_bytes_from_hex(code))
