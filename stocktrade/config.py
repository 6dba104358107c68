"""
Engine settings. Defaults match market-order execution with a 5-minute quote
staleness threshold and no commission.

Environment overrides (read by EngineSettings.from_env):
STOCKTRADE_STALE_MINUTES, STOCKTRADE_COMMISSION, STOCKTRADE_RETRY_ON_CONFLICT,
STOCKTRADE_LOG_CAPACITY (size of the engine's rejected-order and refresh-failure logs).
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from decimal import Decimal

from stocktrade.errors import InvalidArgument
from stocktrade.money import round2, to_decimal

STALE_MINUTES_ENV = "STOCKTRADE_STALE_MINUTES"
COMMISSION_ENV = "STOCKTRADE_COMMISSION"
RETRY_ON_CONFLICT_ENV = "STOCKTRADE_RETRY_ON_CONFLICT"
LOG_CAPACITY_ENV = "STOCKTRADE_LOG_CAPACITY"

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class EngineSettings:
    """Tunables for TradeExecutionEngine."""

    stale_after_minutes: int = 5
    commission: Decimal = Decimal("0.00")
    retry_on_conflict: bool = True
    log_capacity: int = 1000

    def __post_init__(self) -> None:
        if self.stale_after_minutes < 0:
            raise InvalidArgument("stale_after_minutes must be >= 0")
        if self.log_capacity < 1:
            raise InvalidArgument("log_capacity must be >= 1")
        commission = round2(self.commission)
        if commission < 0:
            raise InvalidArgument("commission must be >= 0")
        object.__setattr__(self, "commission", commission)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> EngineSettings:
        """Build settings from environment variables; unset variables keep defaults."""
        env = os.environ if environ is None else environ
        kwargs: dict[str, object] = {}

        raw = env.get(STALE_MINUTES_ENV, "").strip()
        if raw:
            try:
                kwargs["stale_after_minutes"] = int(raw)
            except ValueError as e:
                raise InvalidArgument(f"{STALE_MINUTES_ENV} must be an integer, got {raw!r}") from e

        raw = env.get(LOG_CAPACITY_ENV, "").strip()
        if raw:
            try:
                kwargs["log_capacity"] = int(raw)
            except ValueError as e:
                raise InvalidArgument(f"{LOG_CAPACITY_ENV} must be an integer, got {raw!r}") from e

        raw = env.get(COMMISSION_ENV, "").strip()
        if raw:
            kwargs["commission"] = to_decimal(raw)

        raw = env.get(RETRY_ON_CONFLICT_ENV, "").strip().lower()
        if raw:
            if raw in _TRUE:
                kwargs["retry_on_conflict"] = True
            elif raw in _FALSE:
                kwargs["retry_on_conflict"] = False
            else:
                raise InvalidArgument(f"{RETRY_ON_CONFLICT_ENV} must be true or false, got {raw!r}")

        return cls(**kwargs)
