"""
tokenvest Configuration

All settings are read from environment variables at import time. Invalid
values raise ConfigurationError rather than silently falling back.
"""

from __future__ import annotations

import logging
import os

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def _get_positive_int(env_var: str, default: int) -> int:
    """Read a positive integer from the environment."""
    raw = os.getenv(env_var, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError as exc:
        raise ConfigurationError(
            f"{env_var} must be an integer, got {raw!r}",
            details={"env_var": env_var, "value": raw},
        ) from exc
    if value <= 0:
        raise ConfigurationError(
            f"{env_var} must be positive, got {value}",
            details={"env_var": env_var, "value": value},
        )
    return value


def _get_log_level(env_var: str, default: str) -> str:
    level = os.getenv(env_var, default).strip().upper() or default
    if level not in _LOG_LEVELS:
        raise ConfigurationError(
            f"{env_var} must be one of {', '.join(_LOG_LEVELS)}, got {level!r}",
            details={"env_var": env_var, "value": level},
        )
    return level


ENVIRONMENT = os.getenv("TOKENVEST_ENVIRONMENT", "development").strip() or "development"
LOG_LEVEL = _get_log_level("TOKENVEST_LOG_LEVEL", "INFO")
LOG_FILE = os.getenv("TOKENVEST_LOG_FILE", "").strip()
STATE_PATH = os.getenv(
    "TOKENVEST_STATE_PATH",
    os.path.join(os.getcwd(), "tokenvest_state.json"),
)
# Cliff length used when the CLI deploys a new ledger
VESTING_DAYS = _get_positive_int("TOKENVEST_VESTING_DAYS", 270)

if VESTING_DAYS != 270:
    logger.warning(
        "Non-standard vesting period configured: %d days",
        VESTING_DAYS,
        extra={"event": "config.vesting_days_override", "vesting_days": VESTING_DAYS},
    )
