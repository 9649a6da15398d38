import importlib
import json
import logging

import pytest
from prometheus_client import REGISTRY

from stakevault.core import config
from stakevault.core.exceptions import AlreadyStakedError
from stakevault.core.logging_config import setup_logging


class TestConfig:
    def test_integer_setting_falls_back_to_default(self, monkeypatch):
        monkeypatch.delenv("STAKEVAULT_TEST_INT", raising=False)
        assert config._get_int("STAKEVAULT_TEST_INT", 42) == 42

    def test_integer_setting_accepts_underscores(self, monkeypatch):
        monkeypatch.setenv("STAKEVAULT_TEST_INT", "1_000")
        assert config._get_int("STAKEVAULT_TEST_INT", 0) == 1000

    @pytest.mark.parametrize("raw", ["abc", "-5"])
    def test_malformed_integer_setting_raises(self, monkeypatch, raw):
        monkeypatch.setenv("STAKEVAULT_TEST_INT", raw)
        with pytest.raises(config.ConfigurationError):
            config._get_int("STAKEVAULT_TEST_INT", 0)

    def test_unknown_network_raises(self, monkeypatch):
        monkeypatch.setenv("STAKEVAULT_TEST_NETWORK", "devnet")
        with pytest.raises(config.ConfigurationError):
            config._get_network("STAKEVAULT_TEST_NETWORK")

    def test_environment_overrides_initial_funding(self, monkeypatch):
        monkeypatch.setenv("STAKEVAULT_INITIAL_FUNDING", "5000")
        try:
            reloaded = importlib.reload(config)
            assert reloaded.DEFAULT_INITIAL_FUNDING == 5000
            assert reloaded.describe()["default_initial_funding"] == 5000
        finally:
            monkeypatch.delenv("STAKEVAULT_INITIAL_FUNDING")
            importlib.reload(config)

    def test_default_initial_funding_is_one_billion_units(self):
        assert config.DEFAULT_INITIAL_FUNDING == 1_000_000_000


def test_setup_logging_writes_json_records(tmp_path):
    log_file = tmp_path / "stakevault.json"
    logger = setup_logging(
        name="stakevault.test_json",
        log_file=str(log_file),
        level="INFO",
        environment="testnet",
        enable_console=False,
    )

    logger.info("Stake opened", extra={"event": "staking.stake", "amount": 10})
    for handler in logger.handlers:
        handler.flush()

    entry = json.loads(log_file.read_text(encoding="utf-8").strip().splitlines()[-1])
    assert entry["message"] == "Stake opened"
    assert entry["event"] == "staking.stake"
    assert entry["amount"] == 10
    assert entry["environment"] == "testnet"
    assert entry["service"] == "stakevault"
    assert entry["source"]["function"] == "test_setup_logging_writes_json_records"


def test_setup_logging_without_outputs_installs_null_handler():
    logger = setup_logging(name="stakevault.test_quiet", enable_console=False)
    assert [type(h) for h in logger.handlers] == [logging.NullHandler]


def _operation_count(operation, outcome):
    value = REGISTRY.get_sample_value(
        "stakevault_operations_total", {"operation": operation, "outcome": outcome}
    )
    return value or 0.0


def test_operations_are_counted_by_outcome(ledger, pool):
    successes = _operation_count("stake", "success")
    rejections = _operation_count("stake", "AlreadyStaked")

    ledger.stake("0xAlice", 100, current_time=1500)
    with pytest.raises(AlreadyStakedError):
        ledger.stake("0xAlice", 100, current_time=1500)

    assert _operation_count("stake", "success") == successes + 1
    assert _operation_count("stake", "AlreadyStaked") == rejections + 1
    assert REGISTRY.get_sample_value("stakevault_total_staked") == 100


def test_rejections_are_logged_with_error_code(ledger, pool, caplog):
    ledger.stake("0xAlice", 100, current_time=1500)
    with caplog.at_level(logging.WARNING, logger="stakevault"):
        with pytest.raises(AlreadyStakedError):
            ledger.stake("0xAlice", 100, current_time=1500)

    rejected = [r for r in caplog.records if getattr(r, "event", None) == "staking.rejected"]
    assert rejected and rejected[-1].code == "AlreadyStaked"
