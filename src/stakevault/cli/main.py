"""
StakeVault CLI - operate a staking pool kept in a local JSON state file.

Example:
    stakevault create-token --owner alice
    stakevault mint --minter alice --to alice --amount 2000000000
    stakevault --now 1000 init-pool --owner alice --start 1000 --end 2000 --lock 500 --rate 10
    stakevault --now 1500 stake bob 1000000
    stakevault --now 2000 unstake bob
"""

from __future__ import annotations

import json
import logging
from typing import Any

import click
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from ..core import config
from ..core.account_store import JsonAccountStore
from ..core.exceptions import StakingError, TokenTransferError
from ..core.logging_config import setup_logging
from ..core.staking_ledger import StakingLedger
from ..core.token_ledger import TokenLedger

logger = logging.getLogger(__name__)
console = Console()

TOKEN_SECTION = "token"


class LedgerSession:
    """Ledger, token and store loaded from one state file."""

    def __init__(self, state_path: str, now: int | None = None):
        self.store = JsonAccountStore(state_path)
        data = self.store.load_section(TOKEN_SECTION)
        self.token = TokenLedger.from_dict(data) if data else None
        self.now = now

    def require_token(self) -> TokenLedger:
        if self.token is None:
            raise click.ClickException("No token exists yet; run 'stakevault create-token' first")
        return self.token

    def ledger(self) -> StakingLedger:
        if self.now is None:
            return StakingLedger(self.require_token(), self.store)
        return StakingLedger(self.require_token(), self.store, time_provider=lambda: self.now)

    def save_token(self) -> None:
        if self.token is not None:
            self.store.save_section(TOKEN_SECTION, self.token.to_dict())


def _emit(ctx: click.Context, title: str, data: dict[str, Any]) -> None:
    if ctx.obj.get("json_output"):
        click.echo(json.dumps(data, indent=2, sort_keys=True))
        return
    table = Table(show_header=False, box=box.ROUNDED)
    for key, value in data.items():
        table.add_row(f"[bold cyan]{key}", str(value))
    console.print(Panel(table, title=f"[bold green]{title}", border_style="green"))


def _run(session: LedgerSession, action):
    """Run a mutating ledger action and persist token balances on success."""
    try:
        result = action()
    except StakingError as exc:
        logger.debug("CLI operation rejected: %s", exc.code, extra={"event": "cli.rejected"})
        raise click.ClickException(f"{exc.code}: {exc.message}") from exc
    except TokenTransferError as exc:
        raise click.ClickException(str(exc)) from exc
    session.save_token()
    return result


@click.group()
@click.option("--state", "state_path", default=config.STATE_PATH, show_default=True, help="State file path")
@click.option("--now", type=int, default=None, help="Override the clock (Unix timestamp)")
@click.option("--json", "json_output", is_flag=True, help="Emit JSON instead of tables")
@click.option("--verbose", is_flag=True, help="Log to stderr")
@click.pass_context
def cli(ctx: click.Context, state_path: str, now: int | None, json_output: bool, verbose: bool):
    """Fixed-rate token staking pool."""
    setup_logging(
        name="stakevault",
        log_file=config.LOG_FILE,
        level=config.LOG_LEVEL,
        environment=config.NETWORK.value,
        enable_console=verbose,
    )
    ctx.ensure_object(dict)
    try:
        ctx.obj["session"] = LedgerSession(state_path, now)
    except StakingError as exc:
        raise click.ClickException(f"{exc.code}: {exc.message}") from exc
    ctx.obj["json_output"] = json_output


@cli.command("create-token")
@click.option("--owner", required=True, help="Mint authority")
@click.option("--name", default="Stake Token", show_default=True)
@click.option("--symbol", default=config.ASSET_SYMBOL, show_default=True)
@click.option("--decimals", default=config.ASSET_DECIMALS, show_default=True, type=int)
@click.pass_context
def create_token(ctx: click.Context, owner: str, name: str, symbol: str, decimals: int):
    """Create the staked asset."""
    session: LedgerSession = ctx.obj["session"]
    if session.token is not None:
        raise click.ClickException(f"Token {session.token.symbol} already exists")
    session.token = TokenLedger(name=name, symbol=symbol, decimals=decimals, owner=owner)
    session.save_token()
    _emit(ctx, "Token", {"name": name, "symbol": symbol, "decimals": decimals, "owner": owner})


@cli.command("mint")
@click.option("--minter", required=True)
@click.option("--to", "recipient", required=True)
@click.option("--amount", required=True, type=int)
@click.pass_context
def mint(ctx: click.Context, minter: str, recipient: str, amount: int):
    """Mint tokens to an account (token owner only)."""
    session: LedgerSession = ctx.obj["session"]
    token = session.require_token()
    _run(session, lambda: token.mint(minter, recipient, amount))
    _emit(ctx, "Mint", {"to": recipient, "amount": amount, "balance": token.balance_of(recipient)})


@cli.command("balance")
@click.argument("account")
@click.pass_context
def balance(ctx: click.Context, account: str):
    """Show an account's token balance."""
    token = ctx.obj["session"].require_token()
    _emit(ctx, "Balance", {"account": account, "balance": token.balance_of(account), "symbol": token.symbol})


@cli.command("init-pool")
@click.option("--owner", required=True)
@click.option("--start", "start_time", required=True, type=int)
@click.option("--end", "end_time", required=True, type=int)
@click.option("--lock", "lock_duration", required=True, type=int, help="Lock duration in seconds")
@click.option("--rate", "annual_rate", required=True, type=int, help="Annual rate in whole percent")
@click.option("--funding", type=int, default=None, help="Custody seed amount from the owner")
@click.pass_context
def init_pool(ctx: click.Context, owner, start_time, end_time, lock_duration, annual_rate, funding):
    """Create the staking pool and fund its custody account."""
    session: LedgerSession = ctx.obj["session"]
    ledger = session.ledger()
    pool = _run(
        session,
        lambda: ledger.initialize_pool(owner, start_time, end_time, lock_duration, annual_rate, funding),
    )
    _emit(ctx, "Pool", _pool_view(pool))


@cli.command("update-pool")
@click.option("--caller", required=True)
@click.option("--start", "start_time", required=True, type=int)
@click.option("--end", "end_time", required=True, type=int)
@click.option("--lock", "lock_duration", required=True, type=int)
@click.option("--rate", "annual_rate", required=True, type=int)
@click.pass_context
def update_pool(ctx: click.Context, caller, start_time, end_time, lock_duration, annual_rate):
    """Reconfigure the pool (owner only)."""
    session: LedgerSession = ctx.obj["session"]
    ledger = session.ledger()
    pool = _run(session, lambda: ledger.update_pool(caller, start_time, end_time, lock_duration, annual_rate))
    _emit(ctx, "Pool", _pool_view(pool))


@cli.command("stake")
@click.argument("user")
@click.argument("amount", type=int)
@click.pass_context
def stake(ctx: click.Context, user: str, amount: int):
    """Open a stake for USER."""
    session: LedgerSession = ctx.obj["session"]
    ledger = session.ledger()
    record = _run(session, lambda: ledger.stake(user, amount))
    _emit(ctx, "Stake", record.to_dict())


@cli.command("claim")
@click.argument("user")
@click.pass_context
def claim(ctx: click.Context, user: str):
    """Claim USER's accrued rewards."""
    session: LedgerSession = ctx.obj["session"]
    ledger = session.ledger()
    paid = _run(session, lambda: ledger.claim_rewards(user))
    _emit(ctx, "Claim", {"user": user, "paid": paid})


@cli.command("unstake")
@click.argument("user")
@click.pass_context
def unstake(ctx: click.Context, user: str):
    """Close USER's stake and return the principal."""
    session: LedgerSession = ctx.obj["session"]
    ledger = session.ledger()
    returned = _run(session, lambda: ledger.unstake(user))
    _emit(ctx, "Unstake", {"user": user, "returned": returned})


@cli.command("pool")
@click.pass_context
def show_pool(ctx: click.Context):
    """Show the pool configuration."""
    pool = ctx.obj["session"].ledger().get_pool()
    if pool is None:
        raise click.ClickException("PoolNotInitialized: Pool is not initialized")
    _emit(ctx, "Pool", _pool_view(pool))


@cli.command("position")
@click.argument("user")
@click.pass_context
def position(ctx: click.Context, user: str):
    """Show USER's stake record and claimable rewards."""
    ledger = ctx.obj["session"].ledger()
    record = ledger.get_stake(user)
    if record is None:
        _emit(ctx, "Position", {"owner": user, "active": False})
        return
    data = record.to_dict()
    data["active"] = record.is_active
    data["pending_rewards"] = ledger.pending_rewards(user)
    data["unlock_time"] = ledger.unlock_time(user)
    _emit(ctx, "Position", data)


@cli.command("solvency")
@click.pass_context
def solvency(ctx: click.Context):
    """Compare custody balance with outstanding liabilities."""
    ledger = ctx.obj["session"].ledger()
    try:
        report = ledger.solvency_report()
    except StakingError as exc:
        raise click.ClickException(f"{exc.code}: {exc.message}") from exc
    _emit(ctx, "Solvency", report)


@cli.command("config")
@click.pass_context
def show_config(ctx: click.Context):
    """Show the effective STAKEVAULT_* settings."""
    _emit(ctx, "Configuration", config.describe())


def _pool_view(pool) -> dict[str, Any]:
    data = pool.to_dict()
    data.pop("custody_authority_token", None)
    return data


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
