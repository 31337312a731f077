"""
Timelock Vault Configuration

Values are read from environment variables at import time. Anything the CLI
accepts as an option overrides the corresponding variable.
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


_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


def _get_network(env_var: str = "TIMELOCK_NETWORK") -> NetworkType:
    raw = os.getenv(env_var, NetworkType.TESTNET.value).strip().lower()
    try:
        return NetworkType(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"{env_var} must be one of {[n.value for n in NetworkType]}, got {raw!r}"
        ) from exc


def _get_log_level(env_var: str = "TIMELOCK_LOG_LEVEL") -> str:
    level = os.getenv(env_var, "INFO").strip().upper()
    if level not in _LOG_LEVELS:
        raise ConfigurationError(f"{env_var} must be one of {sorted(_LOG_LEVELS)}, got {level!r}")
    return level


def _get_native_asset(env_var: str = "TIMELOCK_NATIVE_ASSET") -> str:
    asset = os.getenv(env_var, "XAI").strip()
    if not asset:
        raise ConfigurationError(f"{env_var} cannot be empty")
    return asset


# Default to testnet for safety
NETWORK = _get_network()
NATIVE_ASSET = _get_native_asset()
STATE_PATH = os.getenv(
    "TIMELOCK_STATE_PATH",
    os.path.join(os.getcwd(), "data", "timelock_vault.json"),
)
LOG_LEVEL = _get_log_level()
LOG_FILE = os.getenv("TIMELOCK_LOG_FILE", "").strip() or None
ENVIRONMENT = os.getenv("TIMELOCK_ENVIRONMENT", "development").strip() or "development"

if NETWORK is NetworkType.MAINNET and ENVIRONMENT == "development":
    logger.warning(
        "Mainnet network selected with development environment label",
        extra={"event": "config.environment_mismatch"},
    )
