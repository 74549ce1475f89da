"""
Geyser Configuration

Pool parameters are fixed at construction. Defaults come from environment
variables; a YAML file may override them for a particular deployment.

    GEYSER_MAX_UNLOCK_SCHEDULES      concurrent unlock schedules allowed
    GEYSER_START_BONUS               reward fraction (percent) for a stake held zero time
    GEYSER_BONUS_PERIOD_SECONDS      holding time after which the full reward applies
    GEYSER_INITIAL_SHARES_PER_TOKEN  share mint rate for the first deposit
    GEYSER_GLOBAL_START_TIME         unix time before which nothing can be staked
    GEYSER_FOUNDER_PERCENTAGE        percent of every reward paid to the founder
    GEYSER_CONSUME_NEWEST_FIRST      1 to redeem the newest stakes first on unstake
    GEYSER_LOG_LEVEL                 log level for setup_logging()
"""

from __future__ import annotations

import logging
import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from .geyser_exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Bonus and founder percentages are whole percents (two decimal places of precision).
BONUS_DECIMALS = 2
ONE_HUNDRED_PERCENT = 10**BONUS_DECIMALS

ONE_DAY_SECONDS = 24 * 3600
ONE_YEAR_SECONDS = 365 * ONE_DAY_SECONDS

MAX_UNLOCK_SCHEDULES = int(os.getenv("GEYSER_MAX_UNLOCK_SCHEDULES", "10"))
START_BONUS = int(os.getenv("GEYSER_START_BONUS", str(ONE_HUNDRED_PERCENT)))
BONUS_PERIOD_SECONDS = int(os.getenv("GEYSER_BONUS_PERIOD_SECONDS", "1"))
INITIAL_SHARES_PER_TOKEN = int(os.getenv("GEYSER_INITIAL_SHARES_PER_TOKEN", str(10**6)))
GLOBAL_START_TIME = int(os.getenv("GEYSER_GLOBAL_START_TIME", "0"))
FOUNDER_PERCENTAGE = int(os.getenv("GEYSER_FOUNDER_PERCENTAGE", "0"))
CONSUME_NEWEST_FIRST = bool(int(os.getenv("GEYSER_CONSUME_NEWEST_FIRST", "0")))
LOG_LEVEL = os.getenv("GEYSER_LOG_LEVEL", "INFO")


@dataclass(frozen=True)
class GeyserConfig:
    """Construction parameters of a token geyser."""

    max_unlock_schedules: int = MAX_UNLOCK_SCHEDULES
    start_bonus: int = START_BONUS
    bonus_period_seconds: int = BONUS_PERIOD_SECONDS
    initial_shares_per_token: int = INITIAL_SHARES_PER_TOKEN
    global_start_time: int = GLOBAL_START_TIME
    founder_percentage: int = FOUNDER_PERCENTAGE
    consume_newest_first: bool = CONSUME_NEWEST_FIRST

    def validate(self) -> "GeyserConfig":
        """Raise ConfigurationError on the first invalid parameter."""
        for f in fields(self):
            value = getattr(self, f.name)
            if f.name == "consume_newest_first":
                if not isinstance(value, bool):
                    raise ConfigurationError(f"TokenGeyser: {f.name} must be a boolean")
                continue
            if not isinstance(value, int) or isinstance(value, bool):
                raise ConfigurationError(f"TokenGeyser: {f.name} must be an integer")

        if self.max_unlock_schedules <= 0:
            raise ConfigurationError("TokenGeyser: max unlock schedules is zero")
        if not 0 <= self.start_bonus <= ONE_HUNDRED_PERCENT:
            raise ConfigurationError("TokenGeyser: start bonus too high")
        if self.bonus_period_seconds <= 0:
            raise ConfigurationError("TokenGeyser: bonus period is zero")
        if self.initial_shares_per_token <= 0:
            raise ConfigurationError("TokenGeyser: initialSharesPerToken is zero")
        if self.global_start_time < 0:
            raise ConfigurationError("TokenGeyser: global start time is negative")
        if not 0 <= self.founder_percentage <= 100:
            raise ConfigurationError("TokenGeyser: founder percentage too high")
        return self

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "GeyserConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(
                f"TokenGeyser: unknown configuration keys: {', '.join(unknown)}"
            )
        return cls(**data).validate()

    @classmethod
    def from_env(cls) -> "GeyserConfig":
        """Configuration built from the GEYSER_* environment defaults."""
        return cls().validate()


def load_config(path: str | os.PathLike | None = None) -> GeyserConfig:
    """
    Load a geyser configuration.

    Args:
        path: Optional YAML file whose top-level mapping (or its ``geyser``
            section) overrides the environment defaults

    Returns:
        Validated GeyserConfig
    """
    base = GeyserConfig().to_dict()
    if path is None:
        return GeyserConfig.from_dict(base)

    config_path = Path(path)
    if not config_path.exists():
        raise ConfigurationError(f"Configuration file not found: {config_path}")

    with open(config_path, "r") as f:
        loaded = yaml.safe_load(f) or {}
    if not isinstance(loaded, dict):
        raise ConfigurationError(f"Configuration file must contain a mapping: {config_path}")

    overrides = loaded.get("geyser", loaded)
    base.update(overrides)
    config = GeyserConfig.from_dict(base)

    logger.info(
        "Geyser configuration loaded",
        extra={"event": "config.loaded", "path": str(config_path), **config.to_dict()},
    )
    return config
