import logging
import time
import typer
from typing import Optional

from . import config
from .candidates import generate_candidate_keys, new_plan_key
from .main import build_contract, build_pipeline, discover, print_report
from .pipeline import DiscoveryUnavailable
from .refresh import RefreshController
from .summary import explorer_link, summarize_plan

app = typer.Typer(help="Recurring-investment plan discovery utilities")

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


@app.callback()
def main(verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")):
    logging.basicConfig(level=logging.DEBUG if verbose else logging.WARNING, format=LOG_FORMAT)


@app.command("discover")
def discover_cmd(
    owner: str = typer.Argument(..., help="Owner address"),
    outfile: Optional[str] = typer.Option(None, "--outfile", "-o", help="CSV output path"),
    no_history: bool = typer.Option(False, "--no-history", help="Skip the transaction indexer"),
):
    try:
        discover(owner, outfile=outfile, use_history=not no_history)
    except DiscoveryUnavailable as e:
        typer.echo(f"Discovery failed: {e}", err=True)
        raise typer.Exit(code=2)
    except ValueError as e:
        raise typer.BadParameter(str(e), param_hint="owner")


@app.command()
def check(
    owner: str = typer.Argument(..., help="Owner address"),
    plan_key: str = typer.Argument(..., help="Plan key to look up"),
):
    pipeline = build_pipeline(use_history=False)
    plan = pipeline.check_key(owner, plan_key)
    if plan is None:
        typer.echo(f"No active plan {plan_key!r} for {owner}")
        raise typer.Exit(code=1)
    s = summarize_plan(plan, time.time(), config.EXPLORER_URL, config.SIP_CONTRACT_ADDRESS)
    for k, v in s.items():
        typer.echo(f"{k}: {v}")


@app.command()
def candidates(
    owner: str = typer.Argument(..., help="Owner address"),
    now: Optional[int] = typer.Option(None, help="Unix time to generate from (default: now)"),
):
    ts = time.time() if now is None else now
    for key in generate_candidate_keys(
        owner, ts, days=config.CANDIDATE_DAYS, hour_step=config.CANDIDATE_HOUR_STEP,
        max_candidates=config.MAX_CANDIDATES,
    ):
        typer.echo(key)


@app.command("new-key")
def new_key(owner: str = typer.Argument(..., help="Owner address")):
    typer.echo(new_plan_key(owner))


@app.command()
def watch(
    owner: str = typer.Argument(..., help="Owner address"),
    poll: float = typer.Option(5.0, "--poll", help="Seconds between head block polls"),
    max_polls: Optional[int] = typer.Option(None, "--max-polls", help="Stop after this many polls"),
):
    contract = build_contract()
    pipeline = build_pipeline(contract)
    controller = RefreshController(
        pipeline,
        on_result=lambda report: print_report(pipeline, report),
        on_error=lambda e: typer.echo(f"Discovery failed, showing last result: {e}", err=True),
    )
    controller.set_owner(owner)
    controller.watch(contract.block_number, poll_interval=poll, max_polls=max_polls)


@app.command()
def deployment():
    contract = build_contract()
    typer.echo(f"Checking contract at: {contract.address} (chain {config.CHAIN_ID})")
    if contract.is_deployed():
        typer.echo("✅ CONTRACT IS DEPLOYED")
        typer.echo(explorer_link(config.EXPLORER_URL, "address", contract.address))
    else:
        typer.echo("❌ CONTRACT NOT DEPLOYED - the address has no contract code.")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
