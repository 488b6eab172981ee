"""
Shared data models for the DLMM strategy backtester.

This module contains the value objects exchanged between the simulation
core, the real-data adapter and the request surface. Engine-internal
models (simulation state, fee parameters, pool snapshots) live in
backtester.models.
"""
import math
from typing import List, Optional
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class StrategyKind(str, Enum):
    """LP strategy policy simulated by a backtest run."""
    CONCENTRATED = "concentrated"
    WIDE = "wide"
    ACTIVE_REBALANCING = "active"


class FeeSource(str, Enum):
    """Where the fee model parameters of a run came from."""
    DEFAULT = "default"
    POOL = "pool"


class PricePoint(BaseModel):
    """
    One day of market data.

    Values are not checked here: price feeds are untrusted and the series
    is validated by the core before any simulation step.
    """
    model_config = ConfigDict(frozen=True)

    timestamp: str = Field(..., description="ISO date of the observation")
    price: float = Field(..., description="Price of the base token in quote units")
    volume: float = Field(..., description="Traded volume for the day in quote units")


class PriceRange(BaseModel):
    """Price band in which an LP position is active."""
    model_config = ConfigDict(frozen=True)

    min_price: float = Field(..., description="Lower bound of the band (inclusive)")
    max_price: float = Field(..., description="Upper bound of the band (inclusive)")

    @classmethod
    def band(cls, center: float, half_width: float) -> 'PriceRange':
        """Symmetric band of +/- half_width (a fraction) around center."""
        return cls(
            min_price=center * (1 - half_width),
            max_price=center * (1 + half_width),
        )

    @property
    def is_valid(self) -> bool:
        return (
            math.isfinite(self.min_price)
            and math.isfinite(self.max_price)
            and 0 < self.min_price < self.max_price
        )

    @property
    def width(self) -> float:
        return self.max_price - self.min_price

    def contains(self, price: float) -> bool:
        return self.min_price <= price <= self.max_price


class StrategyConfig(BaseModel):
    """Parameters of a single backtest run. Immutable for the whole run."""
    model_config = ConfigDict(frozen=True)

    investment_amount: float = Field(
        ..., gt=0, allow_inf_nan=False, description="Capital deployed, in USD"
    )
    strategy_kind: StrategyKind = Field(..., description="Range policy to simulate")
    initial_range: Optional[PriceRange] = Field(
        None, description="Requested band (Concentrated only)"
    )
    rebalance_threshold: float = Field(
        0.05, gt=0.0, le=1.0,
        description="Relative deviation from the band center that triggers a rebalance "
                    "(ActiveRebalancing only)"
    )
    token_pair_id: str = Field(..., min_length=1, description="Token pair, e.g. 'SOL/USDC'")
    strict_range: bool = Field(
        False,
        description="Fail with InvalidRangeError instead of auto-correcting "
                    "an unusable Concentrated range"
    )


class DailyResult(BaseModel):
    """Simulation output for one day. Never mutated after creation."""
    model_config = ConfigDict(frozen=True)

    date: str = Field(..., description="Date of the price point")
    price: float = Field(..., description="Price on that day")
    in_range: bool = Field(..., description="Whether the position earned fees")
    daily_fees: float = Field(..., ge=0, description="Fees earned on that day")
    cumulative_fees: float = Field(..., ge=0, description="Fees earned up to and including that day")
    impermanent_loss: float = Field(..., ge=0, description="IL versus holding, in USD")
    net_pl: float = Field(..., description="Cumulative fees minus IL minus gas spent so far")
    range_min: float = Field(..., description="Lower bound of the band active that day")
    range_max: float = Field(..., description="Upper bound of the band active that day")
    rebalanced: bool = Field(False, description="Whether the band was recentered that day")
    cumulative_gas_cost: float = Field(0.0, ge=0, description="Gas spent on rebalances so far")


class BacktestSummary(BaseModel):
    """
    Headline statistics of a run.

    rebalance_count and total_gas_costs are None for strategies that never
    rebalance: absent means "not applicable", zero means "applicable, none
    occurred".
    """
    model_config = ConfigDict(frozen=True)

    best_day: float = Field(..., description="Highest single-day fees")
    worst_day: float = Field(..., description="Lowest single-day fees")
    avg_daily_fees: float = Field(..., description="Total fees divided by number of days")
    rebalance_count: Optional[int] = Field(None, ge=0, description="Number of rebalances")
    total_gas_costs: Optional[float] = Field(None, ge=0, description="Gas spent on rebalances")


class PoolHealth(BaseModel):
    """Snapshot of the live pool a real-data run was enriched with."""
    model_config = ConfigDict(frozen=True)

    total_liquidity: float = Field(..., description="Pool liquidity in USD")
    volume_24h: float = Field(..., description="Estimated daily pool volume in USD")
    is_active: bool = Field(..., description="Whether the pool has meaningful liquidity")
    pool_address: str = Field(..., description="On-chain pool address")
    warning: Optional[str] = Field(None, description="Caveat about the estimate, if any")


class BacktestResult(BaseModel):
    """Terminal aggregate of a backtest run."""
    model_config = ConfigDict(frozen=True)

    strategy_kind: StrategyKind = Field(..., description="Simulated strategy")
    token_pair_id: str = Field(..., description="Token pair")
    total_investment: float = Field(..., description="Capital deployed, in USD")
    total_fees: float = Field(..., description="Fees earned over the whole run")
    impermanent_loss: float = Field(..., description="IL on the last day")
    net_profit: float = Field(..., description="Net P&L on the last day")
    roi: float = Field(..., description="Net profit over investment, in percent")
    time_in_range: float = Field(..., ge=0, le=100, description="Share of days in range, in percent")
    daily_breakdown: List[DailyResult] = Field(..., description="One record per input day")
    summary: BacktestSummary = Field(..., description="Headline statistics")
    requested_range: Optional[PriceRange] = Field(
        None, description="Band requested by the caller"
    )
    applied_range: Optional[PriceRange] = Field(
        None, description="Band actually simulated on the first day"
    )
    range_auto_corrected: bool = Field(
        False, description="Whether the requested band was replaced by the default band"
    )
    fee_source: FeeSource = Field(FeeSource.DEFAULT, description="Origin of fee parameters")
    pool_health: Optional[PoolHealth] = Field(None, description="Live pool snapshot")

    @model_validator(mode='after')
    def validate_breakdown(self) -> 'BacktestResult':
        """A result always covers at least one day."""
        if not self.daily_breakdown:
            raise ValueError("daily_breakdown must contain at least one day")
        return self
