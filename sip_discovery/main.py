import logging
import time

from . import config
from .contract import PlanContract
from .csv_io import append_plans
from .events import EventScanner
from .fetcher import BatchedFetcher
from .history import TransactionHistory
from .pipeline import DiscoveryPipeline
from .reconcile import Reconciler
from .registry import CreationTxIndex, PlanKeyRegistry
from .summary import portfolio_totals, summarize_plan

logger = logging.getLogger(__name__)


def build_contract():
    return PlanContract(
        config.EXECUTION_RPC_URL,
        config.SIP_CONTRACT_ADDRESS,
        fallback_url=config.EXECUTION_RPC_FALLBACK_URL,
    )


def build_pipeline(contract=None, use_history=True):
    contract = contract or build_contract()
    registry = PlanKeyRegistry(config.REGISTRY_PATH).load()
    creation_txs = CreationTxIndex(config.CREATION_TX_PATH).load()
    history = None
    if use_history and config.HISTORY_API_URL:
        history = TransactionHistory(
            config.HISTORY_API_URL, contract, config.CREATE_PLAN_SELECTOR,
            ecosystem=config.HISTORY_ECOSYSTEM, limit=config.HISTORY_LIMIT,
        )
    return DiscoveryPipeline(
        fetcher=BatchedFetcher(contract.get_plan, config.FETCH_BATCH_SIZE, config.FETCH_BATCH_DELAY),
        scanner=EventScanner(
            contract, config.EVENT_LOOKBACK_BLOCKS, config.EVENT_WINDOW_SIZE, config.EVENT_WINDOW_SLEEP
        ),
        reconciler=Reconciler(registry, creation_txs),
        history=history,
        create_selector=config.CREATE_PLAN_SELECTOR,
        candidate_days=config.CANDIDATE_DAYS,
        candidate_hour_step=config.CANDIDATE_HOUR_STEP,
        max_candidates=config.MAX_CANDIDATES,
    )


def print_report(pipeline, report, now=None):
    now = time.time() if now is None else now
    creation_txs = pipeline.reconciler.creation_txs
    print(f"\n**************** {len(report.plans)} active plans for {report.owner} ****************")
    for plan in report.plans:
        tx = creation_txs.get(report.owner, plan.plan_key) if creation_txs else None
        s = summarize_plan(plan, now, config.EXPLORER_URL, config.SIP_CONTRACT_ADDRESS, tx)
        print(
            f"{s['plan_key']} - Total: {s['total_amount']:.4f}, "
            f"Per interval: {s['amount_per_interval']:.4f} every {s['frequency_days']}d, "
            f"Executed: {s['executed_amount']:.4f} ({s['progress']:.1f}%), "
            f"Execute: {'yes' if s['can_execute'] else 'no'}, "
            f"Finalize: {'yes' if s['can_finalize'] else 'no'}"
        )
        if s["creation_tx_link"]:
            print(f"    created in {s['creation_tx_link']}")
    totals = portfolio_totals(report.plans)
    print(f"Portfolio: {totals['total']:.4f} total / {totals['executed']:.4f} executed")
    if report.new_keys:
        print(f"New keys remembered: {', '.join(report.new_keys)}")
    if report.transport_errors or report.failed_windows or report.skipped_transactions:
        print(
            f"Warnings: {report.transport_errors} failed lookups, "
            f"{report.failed_windows} failed log windows, "
            f"{report.skipped_transactions} skipped transactions"
        )


def discover(owner, outfile=None, use_history=True):
    pipeline = build_pipeline(use_history=use_history)
    report = pipeline.run(owner)
    print_report(pipeline, report)
    if outfile:
        txs = {}
        if pipeline.reconciler.creation_txs:
            txs = {p.plan_key: pipeline.reconciler.creation_txs.get(owner, p.plan_key) or "" for p in report.plans}
        n = append_plans(outfile, owner, report.plans, txs)
        print(f"\n✅ {n} new rows saved in {outfile}")
    return report
