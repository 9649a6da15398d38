"""
StakeVault Configuration

All settings come from environment variables; malformed values raise
ConfigurationError at import time rather than surfacing later mid-operation.
"""

from __future__ import annotations

import logging
import os
from enum import Enum

logger = logging.getLogger(__name__)


class NetworkType(Enum):
    TESTNET = "testnet"
    MAINNET = "mainnet"


class ConfigurationError(Exception):
    """Raised when required configuration is missing or invalid."""
    pass


def _get_int(env_var: str, default: int, minimum: int = 0) -> int:
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    try:
        value = int(raw.replace("_", ""))
    except ValueError as exc:
        raise ConfigurationError(f"{env_var} must be an integer, got {raw!r}") from exc
    if value < minimum:
        raise ConfigurationError(f"{env_var} must be >= {minimum}, got {value}")
    return value


def _get_network(env_var: str) -> NetworkType:
    raw = os.getenv(env_var, NetworkType.TESTNET.value).strip().lower()
    try:
        return NetworkType(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"{env_var} must be one of {[n.value for n in NetworkType]}, got {raw!r}"
        ) from exc


NETWORK = _get_network("STAKEVAULT_NETWORK")

# Amount the pool owner seeds the custody account with at initialization
DEFAULT_INITIAL_FUNDING = _get_int("STAKEVAULT_INITIAL_FUNDING", 1_000_000_000)

STATE_PATH = os.getenv(
    "STAKEVAULT_STATE_PATH",
    os.path.join(os.getcwd(), "data", "stakevault_state.json"),
)
ASSET_SYMBOL = os.getenv("STAKEVAULT_ASSET_SYMBOL", "STK").strip() or "STK"
ASSET_DECIMALS = _get_int("STAKEVAULT_ASSET_DECIMALS", 6)

LOG_LEVEL = os.getenv("STAKEVAULT_LOG_LEVEL", "INFO").strip().upper() or "INFO"
LOG_FILE = os.getenv("STAKEVAULT_LOG_FILE", "").strip() or None

if LOG_LEVEL not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
    raise ConfigurationError(f"STAKEVAULT_LOG_LEVEL is not a valid level: {LOG_LEVEL!r}")


def describe() -> dict:
    """Non-secret settings, for diagnostics output."""
    return {
        "network": NETWORK.value,
        "default_initial_funding": DEFAULT_INITIAL_FUNDING,
        "state_path": STATE_PATH,
        "asset_symbol": ASSET_SYMBOL,
        "asset_decimals": ASSET_DECIMALS,
        "log_level": LOG_LEVEL,
        "log_file": LOG_FILE,
    }
