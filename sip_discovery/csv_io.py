import os, csv
from typing import Iterable

from .models import Plan

CSV_HEADER = [
    "owner","plan_key","asset","total_amount","amount_per_interval",
    "executed_amount","frequency_seconds","next_execution","maturity",
    "destination","active","creation_tx"
]

def csv_has_header(path: str) -> bool:
    if not os.path.exists(path) or os.path.getsize(path) == 0:
        return False
    with open(path, "r", newline="") as f:
        try:
            first = next(csv.reader(f))
            return first == CSV_HEADER
        except StopIteration:
            return False

def written_keys(path: str, owner: str) -> set:
    """Plan keys already present in the CSV for this owner."""
    if not os.path.exists(path) or os.path.getsize(path) == 0:
        return set()
    keys = set()
    with open(path, "r", newline="") as f:
        for row in csv.reader(f):
            if len(row) > 1 and row[0] != "owner" and row[0].lower() == owner.lower():
                keys.add(row[1])
    return keys

def append_plans(path: str, owner: str, plans: Iterable[Plan], creation_txs: dict | None = None) -> int:
    """Append plans not yet written for `owner`. Returns the number of rows written."""
    creation_txs = creation_txs or {}
    needs_header = not csv_has_header(path)
    seen = written_keys(path, owner)
    rows = 0
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)
    with open(path, "a", newline="") as f:
        writer = csv.writer(f)
        if needs_header:
            writer.writerow(CSV_HEADER)
        for p in plans:
            if p.plan_key in seen:
                continue
            writer.writerow([
                owner, p.plan_key, p.asset_address, p.total_amount, p.amount_per_interval,
                p.executed_amount, p.frequency_seconds, p.next_execution_time, p.maturity_time,
                p.destination_address, p.active, creation_txs.get(p.plan_key, "")
            ])
            seen.add(p.plan_key)
            rows += 1
    return rows
