"""
Minimal JSON-RPC transport for the plan contract's chain.

Every call goes through `rpc_call`, which raises `RpcError` for JSON-RPC
error objects and `HttpError` for non-2xx responses. Network failures and
non-JSON bodies surface as `requests.RequestException`. Callers treat all three
as transport failures; none of them says anything about whether a plan key exists.
"""
from __future__ import annotations

import logging

import requests

logger = logging.getLogger(__name__)

# JSON-RPC error code geth-style nodes use for a reverted eth_call
EXECUTION_REVERTED = 3


class RpcError(RuntimeError):
    def __init__(self, code: int, message: str, data=None):
        super().__init__(f"RPC error {code}: {message}")
        self.code = code
        self.message = message
        self.data = data if data is not None else {}


class HttpError(RuntimeError):
    """Raised when an HTTP error occurs (e.g., 401 Unauthorized, 429 Rate Limit)"""
    def __init__(self, status_code: int, message: str, url: str):
        super().__init__(f"HTTP {status_code} error for {url}: {message}")
        self.status_code = status_code
        self.message = message
        self.url = url


# requests.exceptions.JSONDecodeError covers a non-JSON body from the node
TRANSPORT_ERRORS = (RpcError, HttpError, requests.exceptions.JSONDecodeError, requests.RequestException)


def _post(url: str, method: str, params: list, timeout: int):
    try:
        resp = requests.post(
            url,
            json={"jsonrpc": "2.0", "id": 1, "method": method, "params": params},
            timeout=timeout,
        )
        resp.raise_for_status()
    except requests.exceptions.HTTPError as e:
        raise HttpError(e.response.status_code, str(e), url) from e

    j = resp.json()
    if "error" in j and j["error"]:
        err = j["error"]
        raise RpcError(int(err.get("code", -1)), str(err.get("message", "")), err.get("data"))
    return j.get("result")


def rpc_call(rpc_url: str, method: str, params: list, timeout: int = 30, fallback_url: str | None = None):
    """
    Makes an RPC call to rpc_url. If the result is null and fallback_url is provided,
    retries the call with the fallback_url.
    """
    result = _post(rpc_url, method, params, timeout)

    if result is None and fallback_url and fallback_url != rpc_url:
        logger.debug("Primary RPC returned null for %s, trying fallback URL", method)
        result = _post(fallback_url, method, params, timeout)
        if result is not None:
            logger.debug("Fallback RPC succeeded for %s", method)

    return result


def to_hex(i: int) -> str:
    return hex(i)

def from_hex(h: str) -> int:
    return int(h, 16)
