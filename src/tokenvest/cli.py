#!/usr/bin/env python3
"""
tokenvest CLI - Vesting Ledger Commands

Operates a vesting ledger and its token persisted in a JSON state file:
- Deploy a token and ledger
- Fund the ledger and create schedules
- Release vested schedules and withdraw uncommitted funds
- Inspect schedules and totals
"""

from __future__ import annotations

import json
import logging
import os
import sys
from pathlib import Path
from typing import Any

import click
from rich import box
from rich.console import Console
from rich.table import Table

from . import config
from .clock import SECONDS_PER_DAY, ManualClock, system_time
from .exceptions import VestingError, get_error_context
from .ledger import VestingLedger
from .logging_config import setup_logging
from .token import FungibleToken

logger = logging.getLogger(__name__)
console = Console()


def _handle_cli_error(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging/exit codes."""
    logger.error(
        "CLI error: %s",
        exc,
        exc_info=True,
        extra={"event": "cli.error", **get_error_context(exc)},
    )
    console.print(f"[bold red]Error:[/] {exc}")
    sys.exit(exit_code)


class LedgerState:
    """Token and ledger loaded from, and saved back to, a JSON state file."""

    def __init__(self, path: str, at: int | None = None):
        self.path = Path(path)
        self.clock = ManualClock(at) if at is not None else system_time
        self.token: FungibleToken | None = None
        self.ledger: VestingLedger | None = None

    def load(self) -> "LedgerState":
        if not self.path.exists():
            raise click.ClickException(
                f"State file {self.path} not found. Run 'tokenvest init' first."
            )
        try:
            with self.path.open("r", encoding="utf-8") as f:
                data = json.load(f)
            self.token = FungibleToken.from_dict(data["token"])
            self.ledger = VestingLedger.from_dict(
                data["ledger"], custodian=self.token, time_provider=self.clock
            )
        except json.JSONDecodeError as exc:
            raise click.ClickException(f"State file {self.path} is not valid JSON: {exc}")
        except KeyError as exc:
            raise click.ClickException(
                f"State file {self.path} is missing field {exc.args[0]!r}"
            )
        except (TypeError, ValueError) as exc:
            raise click.ClickException(f"State file {self.path} is malformed: {exc}")
        logger.debug("Loaded state from %s", self.path)
        return self

    def save(self) -> None:
        data = {"token": self.token.to_dict(), "ledger": self.ledger.to_dict()}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        with tmp_path.open("w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_path, self.path)
        logger.debug("Saved state to %s", self.path)


def _load_state(ctx: click.Context) -> LedgerState:
    state = LedgerState(ctx.obj["state_path"], ctx.obj.get("at"))
    try:
        return state.load()
    except VestingError as exc:
        _handle_cli_error(exc)


def _run(ctx: click.Context, action) -> Any:
    """Load state, apply ``action(state)`` and persist only on success."""
    state = _load_state(ctx)
    try:
        result = action(state)
    except VestingError as exc:
        _handle_cli_error(exc)
    state.save()
    return result


def _schedules_table(ledger: VestingLedger) -> Table:
    table = Table(title="Vesting Schedules", box=box.ROUNDED)
    table.add_column("#", justify="right")
    table.add_column("Beneficiary", style="cyan")
    table.add_column("Start", justify="right")
    table.add_column("Vests At", justify="right")
    table.add_column("Amount", justify="right", style="green")
    table.add_column("Status")

    for index, beneficiary in enumerate(ledger.get_beneficiaries()):
        schedule = ledger.get_vesting_schedule(beneficiary)
        if schedule.released:
            status = "[dim]released"
        elif ledger.compute_releasable_amount(beneficiary):
            status = "[bold green]releasable"
        else:
            status = "[yellow]locked"
        table.add_row(
            str(index),
            beneficiary,
            str(schedule.start),
            str(schedule.vesting_date(ledger.vesting_duration)),
            str(schedule.amount_total),
            status,
        )
    return table


@click.group()
@click.option(
    "--state",
    "state_path",
    default=config.STATE_PATH,
    envvar="TOKENVEST_STATE_PATH",
    show_default=True,
    help="Path to the JSON state file",
)
@click.option("--at", type=int, default=None, help="Evaluate at this Unix timestamp instead of now")
@click.option(
    "--log-level",
    default=config.LOG_LEVEL,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    help="Logging level (used when TOKENVEST_LOG_FILE is set)",
)
@click.pass_context
def cli(ctx: click.Context, state_path: str, at: int | None, log_level: str):
    """Token vesting ledger commands."""
    # stdout is reserved for command output; structured logs only go to a file
    if config.LOG_FILE:
        setup_logging(
            name="tokenvest",
            log_file=config.LOG_FILE,
            level=log_level,
            environment=config.ENVIRONMENT,
            enable_console=False,
        )
    ctx.ensure_object(dict)
    ctx.obj["state_path"] = state_path
    ctx.obj["at"] = at


@cli.command("init")
@click.option("--owner", required=True, help="Owner address of the token and ledger")
@click.option("--supply", type=int, required=True, help="Initial token supply minted to the owner")
@click.option("--symbol", default="VEST", show_default=True)
@click.option("--name", "token_name", default="Vesting Token", show_default=True)
@click.option("--vesting-days", type=int, default=config.VESTING_DAYS, show_default=True)
@click.option("--force", is_flag=True, help="Overwrite an existing state file")
@click.pass_context
def init_state(
    ctx: click.Context,
    owner: str,
    supply: int,
    symbol: str,
    token_name: str,
    vesting_days: int,
    force: bool,
):
    """
    Deploy a token and a vesting ledger.

    Example:
        tokenvest init --owner 0xowner --supply 1000000
    """
    state = LedgerState(ctx.obj["state_path"], ctx.obj.get("at"))
    if state.path.exists() and not force:
        raise click.ClickException(f"State file {state.path} already exists (use --force)")
    if supply < 0:
        raise click.BadParameter("cannot be negative", param_hint="--supply")
    if vesting_days <= 0:
        raise click.BadParameter("must be positive", param_hint="--vesting-days")

    try:
        state.token = FungibleToken(name=token_name, symbol=symbol, owner=owner)
        if supply > 0:
            state.token.mint(owner, owner, supply)
        state.ledger = VestingLedger(
            custodian=state.token,
            owner=owner,
            time_provider=state.clock,
            vesting_duration=vesting_days * SECONDS_PER_DAY,
        )
    except VestingError as exc:
        _handle_cli_error(exc)

    state.save()
    console.print(f"[bold green]Ledger deployed[/] at {state.ledger.address}")
    console.print(f"Token {symbol} at {state.token.address}")


@cli.command("fund")
@click.option("--amount", type=int, required=True)
@click.option("--caller", default=None, help="Funding address (defaults to owner)")
@click.pass_context
def fund(ctx: click.Context, amount: int, caller: str | None):
    """Transfer tokens from the caller to the ledger."""

    def action(state: LedgerState):
        sender = caller or state.ledger.owner
        state.token.transfer(sender, state.ledger.address, amount)
        return state.token.balance_of(state.ledger.address)

    balance = _run(ctx, action)
    console.print(f"[bold green]Funded[/] ledger balance is now {balance}")


@cli.command("create")
@click.option("--beneficiary", required=True)
@click.option("--start", type=int, required=True, help="Vesting start (Unix timestamp)")
@click.option("--amount", type=int, required=True)
@click.option("--caller", default=None, help="Calling address (defaults to owner)")
@click.pass_context
def create(ctx: click.Context, beneficiary: str, start: int, amount: int, caller: str | None):
    """Create a single vesting schedule."""

    def action(state: LedgerState):
        return state.ledger.create_vesting_schedule(
            caller or state.ledger.owner, beneficiary, start, amount
        )

    schedule = _run(ctx, action)
    console.print(
        f"[bold green]Schedule created[/] for {schedule.beneficiary}: {schedule.amount_total}"
    )


@cli.command("create-batch")
@click.argument("schedules_file", type=click.File("r"))
@click.option("--caller", default=None, help="Calling address (defaults to owner)")
@click.pass_context
def create_batch(ctx: click.Context, schedules_file, caller: str | None):
    """
    Create schedules from a JSON list of {beneficiary, start, amount}.

    The whole file is applied or nothing is.
    """
    try:
        entries = json.load(schedules_file)
    except json.JSONDecodeError as exc:
        raise click.ClickException(f"Invalid schedules file: {exc}")
    if not isinstance(entries, list):
        raise click.ClickException("Schedules file must contain a JSON list")

    def action(state: LedgerState):
        return state.ledger.create_vesting_schedules(caller or state.ledger.owner, entries)

    created = _run(ctx, action)
    console.print(f"[bold green]Created {len(created)} schedules[/]")


@cli.command("release")
@click.argument("beneficiary")
@click.option("--caller", default=None, help="Calling address (defaults to the beneficiary)")
@click.option("--at", type=int, default=None, help="Release at this Unix timestamp instead of now")
@click.pass_context
def release(ctx: click.Context, beneficiary: str, caller: str | None, at: int | None):
    """Release a vested schedule to its beneficiary."""
    if at is not None:
        ctx.obj["at"] = at

    def action(state: LedgerState):
        return state.ledger.release(caller or beneficiary, beneficiary)

    amount = _run(ctx, action)
    console.print(f"[bold green]Released[/] {amount} to {beneficiary}")


@cli.command("withdraw")
@click.option("--amount", type=int, required=True)
@click.option("--caller", default=None, help="Calling address (defaults to owner)")
@click.pass_context
def withdraw(ctx: click.Context, amount: int, caller: str | None):
    """Withdraw uncommitted funds to the owner."""

    def action(state: LedgerState):
        return state.ledger.withdraw(caller or state.ledger.owner, amount)

    withdrawn = _run(ctx, action)
    console.print(f"[bold green]Withdrawn[/] {withdrawn}")


@cli.command("show")
@click.option("--json", "json_output", is_flag=True, help="Print raw JSON")
@click.pass_context
def show(ctx: click.Context, json_output: bool):
    """Show schedules and ledger totals."""
    state = _load_state(ctx)
    ledger = state.ledger

    try:
        summary = {
            "address": ledger.address,
            "token": ledger.get_token(),
            "owner": ledger.owner,
            "balance": state.token.balance_of(ledger.address),
            "committed_total": ledger.get_vesting_schedules_total_amount(),
            "withdrawable": ledger.get_withdrawable_amount(),
            "schedules_count": ledger.get_vesting_schedules_count(),
            "schedules": [
                ledger.get_vesting_schedule(b).to_dict() for b in ledger.get_beneficiaries()
            ],
        }
    except VestingError as exc:
        _handle_cli_error(exc)

    if json_output:
        click.echo(json.dumps(summary, indent=2))
        return

    totals = Table(show_header=False, box=box.ROUNDED)
    totals.add_row("[bold cyan]Ledger", summary["address"])
    totals.add_row("[bold cyan]Token", summary["token"])
    totals.add_row("[bold cyan]Balance", str(summary["balance"]))
    totals.add_row("[bold yellow]Committed", str(summary["committed_total"]))
    totals.add_row("[bold green]Withdrawable", str(summary["withdrawable"]))
    totals.add_row("[bold]Schedules", str(summary["schedules_count"]))
    console.print(totals)
    if summary["schedules_count"]:
        console.print(_schedules_table(ledger))


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
