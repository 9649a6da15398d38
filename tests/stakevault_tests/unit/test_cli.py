"""
End-to-end tests for the stakevault CLI against a temporary state file.
"""

import json

import pytest
from click.testing import CliRunner

from stakevault.cli.main import cli


@pytest.fixture
def state(tmp_path):
    return str(tmp_path / "state.json")


def run(state, *args, now=None):
    runner = CliRunner()
    base = ["--state", state, "--json"]
    if now is not None:
        base += ["--now", str(now)]
    return runner.invoke(cli, base + list(args))


def payload(result):
    assert result.exit_code == 0, result.output
    return json.loads(result.stdout)


@pytest.fixture
def funded_pool(state):
    payload(run(state, "create-token", "--owner", "0xOwner"))
    payload(run(state, "mint", "--minter", "0xOwner", "--to", "0xOwner", "--amount", "2000000000"))
    payload(run(state, "mint", "--minter", "0xOwner", "--to", "0xBob", "--amount", "1000000"))
    return payload(
        run(
            state,
            "init-pool",
            "--owner", "0xOwner",
            "--start", "1000",
            "--end", "2000",
            "--lock", "500",
            "--rate", "10",
            "--funding", "1000000000",
            now=1000,
        )
    )


def test_init_pool_hides_custody_secret(funded_pool):
    assert funded_pool["owner"] == "0xOwner"
    assert funded_pool["annual_rate"] == 10
    assert "custody_authority_token" not in funded_pool


def test_stake_lock_and_unstake_flow(state, funded_pool):
    record = payload(run(state, "stake", "0xBob", "1000000", now=1500))
    assert record["amount_staked"] == 1_000_000
    assert record["rate_snapshot"] == 10

    assert payload(run(state, "balance", "0xBob"))["balance"] == 0

    locked = run(state, "unstake", "0xBob", now=1999)
    assert locked.exit_code == 1
    assert "LockPeriodNotOver" in locked.output

    assert payload(run(state, "unstake", "0xBob", now=2000))["returned"] == 1_000_000
    assert payload(run(state, "balance", "0xBob"))["balance"] == 1_000_000

    position = payload(run(state, "position", "0xBob", now=2000))
    assert position["active"] is False
    assert position["reward_claimed"] == 0


def test_claim_and_position(state, funded_pool):
    payload(run(state, "stake", "0xBob", "1000000", now=1500))

    position = payload(run(state, "position", "0xBob", now=1500 + 31_536_000))
    assert position["pending_rewards"] == 100_000
    assert position["unlock_time"] == 2000

    assert payload(run(state, "claim", "0xBob", now=1500 + 31_536_000))["paid"] == 100_000

    again = run(state, "claim", "0xBob", now=1500 + 31_536_000)
    assert again.exit_code == 1
    assert "NoRewardsAvailable" in again.output


def test_update_pool_is_owner_only(state, funded_pool):
    denied = run(state, "update-pool", "--caller", "0xBob", "--start", "0", "--end", "1", "--lock", "0", "--rate", "99")
    assert denied.exit_code == 1
    assert "Unauthorized" in denied.output

    assert payload(run(state, "pool"))["annual_rate"] == 10


def test_solvency_report(state, funded_pool):
    payload(run(state, "stake", "0xBob", "1000000", now=1500))
    report = payload(run(state, "solvency", now=1500))
    assert report["total_staked"] == 1_000_000
    assert report["custody_balance"] == 1_001_000_000
    assert report["solvent"] is True


def test_commands_require_token(state):
    result = run(state, "pool")
    assert result.exit_code == 1
    assert "create-token" in result.output


def test_config_shows_effective_settings(state):
    settings = payload(run(state, "config"))
    assert settings["default_initial_funding"] == 1_000_000_000
    assert settings["asset_symbol"] == "STK"
    assert settings["network"] in {"mainnet", "testnet"}
