# scripts/debug_discovery.py
import sys
import time
from pathlib import Path
import logging

# Make repo root importable so "import sip_discovery" works
REPO_ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(REPO_ROOT))

from sip_discovery import config
from sip_discovery.candidates import generate_candidate_keys
from sip_discovery.decoder import decode_plan_keys
from sip_discovery.events import EventScanner
from sip_discovery.history import TransactionHistory
from sip_discovery.main import build_contract

def main():
    logging.basicConfig(level=logging.DEBUG, format="%(asctime)s | %(levelname)s | %(name)s | %(message)s")
    if len(sys.argv) != 2:
        print("usage: debug_discovery.py <owner address>")
        return 1
    owner = sys.argv[1]

    contract = build_contract()
    print("Plan contract:", contract.address, "deployed:", contract.is_deployed())
    print("Head block:", contract.block_number())

    keys = generate_candidate_keys(owner, time.time(), config.CANDIDATE_DAYS,
                                   config.CANDIDATE_HOUR_STEP, config.MAX_CANDIDATES)
    print(f"Strategy A: {len(keys)} guessed keys")

    scan = EventScanner(contract, config.EVENT_LOOKBACK_BLOCKS, config.EVENT_WINDOW_SIZE).scan(owner)
    print(f"Strategy B: keys={scan.plan_keys} failed windows={len(scan.failed_windows)}")

    history = TransactionHistory(config.HISTORY_API_URL, contract, config.CREATE_PLAN_SELECTOR,
                                 ecosystem=config.HISTORY_ECOSYSTEM, limit=config.HISTORY_LIMIT)
    hist = history.fetch(owner)
    decoded, skipped = decode_plan_keys(hist.transactions, config.CREATE_PLAN_SELECTOR)
    print(f"Strategy C: available={hist.available} keys={[d.plan_key for d in decoded]} skipped={skipped}")
    return 0

if __name__ == "__main__":
    sys.exit(main())
