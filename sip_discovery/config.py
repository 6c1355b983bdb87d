import os
from dotenv import load_dotenv
from web3 import Web3

load_dotenv()

def get_env_for_chain(base_key: str, chain_id: str, default: str | None = None):
    """
    Prefer CHAIN_ID-suffixed env (e.g. EXECUTION_RPC_URL_43113) over generic (EXECUTION_RPC_URL).
    Fall back to `default` if neither is set.
    """
    return os.getenv(f"{base_key}_{chain_id}") or os.getenv(base_key) or default

def _int_env(base_key: str, default: int) -> int:
    return int(get_env_for_chain(base_key, CHAIN_ID, str(default)))

def _float_env(base_key: str, default: float) -> float:
    return float(get_env_for_chain(base_key, CHAIN_ID, str(default)))

# Select network (string, e.g. "43113" for Avalanche Fuji)
CHAIN_ID = os.getenv("CHAIN_ID", "43113").strip()

# EL RPC
EXECUTION_RPC_URL = get_env_for_chain(
    "EXECUTION_RPC_URL", CHAIN_ID, "https://api.avax-test.network/ext/bc/C/rpc"
)

# Optional second RPC, used when the primary returns null
EXECUTION_RPC_FALLBACK_URL = get_env_for_chain("EXECUTION_RPC_FALLBACK_URL", CHAIN_ID)

# Plan contract
SIP_CONTRACT_ADDRESS = get_env_for_chain(
    "SIP_CONTRACT_ADDRESS", CHAIN_ID, "0xd8540A08f770BAA3b66C4d43728CDBDd1d7A9c3b"
)
if not SIP_CONTRACT_ADDRESS or not Web3.is_address(SIP_CONTRACT_ADDRESS.lower()):
    raise RuntimeError(
        f"SIP_CONTRACT_ADDRESS (or SIP_CONTRACT_ADDRESS_{CHAIN_ID}) is not a valid address: "
        f"{SIP_CONTRACT_ADDRESS!r}"
    )

# Selector of createPlanWithNative(string,uint256,uint256,uint256,address)
CREATE_PLAN_SELECTOR = get_env_for_chain("CREATE_PLAN_SELECTOR", CHAIN_ID, "0xe1dc1c04").lower()

# Transaction indexer (Routescan-compatible) and block explorer
HISTORY_API_URL = get_env_for_chain(
    "HISTORY_API_URL", CHAIN_ID, "https://cdn.testnet.routescan.io/api/evm/all/transactions"
)
HISTORY_ECOSYSTEM = get_env_for_chain("HISTORY_ECOSYSTEM", CHAIN_ID, "avalanche")
HISTORY_LIMIT = _int_env("HISTORY_LIMIT", 100)
EXPLORER_URL = get_env_for_chain("EXPLORER_URL", CHAIN_ID, "https://testnet.snowtrace.io").rstrip("/")

# Point lookups: batch width and pause between batches (seconds)
FETCH_BATCH_SIZE = _int_env("FETCH_BATCH_SIZE", 3)
FETCH_BATCH_DELAY = _float_env("FETCH_BATCH_DELAY", 0.3)

# Event replay: ~1-2 months on Fuji, provider log cap is 2048 blocks
EVENT_LOOKBACK_BLOCKS = _int_env("EVENT_LOOKBACK_BLOCKS", 500_000)
EVENT_WINDOW_SIZE = _int_env("EVENT_WINDOW_SIZE", 2_000)
EVENT_WINDOW_SLEEP = _float_env("EVENT_WINDOW_SLEEP", 0.0)

# Candidate key guessing
CANDIDATE_DAYS = _int_env("CANDIDATE_DAYS", 7)
CANDIDATE_HOUR_STEP = _int_env("CANDIDATE_HOUR_STEP", 4)
MAX_CANDIDATES = _int_env("MAX_CANDIDATES", 30)

# Local caches
REGISTRY_PATH = get_env_for_chain("REGISTRY_PATH", CHAIN_ID, "cache/plan_keys.json")
CREATION_TX_PATH = get_env_for_chain("CREATION_TX_PATH", CHAIN_ID, "cache/creation_txs.json")
