"""
Engine-specific data models for the DLMM strategy backtester.

These models are used by the simulator, the fee model and the real-data
adapter; they are not part of the request/response surface.
"""
from typing import List, Optional, Dict
from pydantic import BaseModel, ConfigDict, Field, model_validator

from dlmm.errors import StrategyComparisonError
from dlmm.models import BacktestResult, FeeSource, PriceRange, StrategyKind
from backtester.utils.env import (
    DAILY_FEE_RATE,
    POOL_SIZE_TO_VOLUME_RATIO,
    LIQUIDITY_SHARE_CAP,
    GAS_COST_PER_REBALANCE,
)

# Pools at or below this USD liquidity are treated as dead
MIN_ACTIVE_POOL_LIQUIDITY = 1_000.0

# Share of market volume routed through a pool, by pool liquidity (USD)
POOL_VOLUME_SHARE_TIERS = (
    (5_000_000, 0.01),
    (1_000_000, 0.005),
    (100_000, 0.001),
)
THIN_POOL_VOLUME_SHARE = 0.0005


def pool_volume_share(total_liquidity: float) -> float:
    """Fraction of market volume a pool of this size is expected to trade."""
    if total_liquidity <= MIN_ACTIVE_POOL_LIQUIDITY:
        return 0.0
    for min_liquidity, share in POOL_VOLUME_SHARE_TIERS:
        if total_liquidity > min_liquidity:
            return share
    return THIN_POOL_VOLUME_SHARE


class FeeModelParams(BaseModel):
    """Constants of the fee accrual model."""
    model_config = ConfigDict(frozen=True)

    daily_fee_rate: float = Field(
        DAILY_FEE_RATE, ge=0, description="Share of daily volume paid to LPs"
    )
    pool_size_to_volume_ratio: float = Field(
        POOL_SIZE_TO_VOLUME_RATIO, gt=0,
        description="Assumed pool liquidity as a fraction of daily volume"
    )
    liquidity_share_cap: float = Field(
        LIQUIDITY_SHARE_CAP, gt=0, le=1, description="Maximum assumed pool share"
    )
    gas_cost_per_rebalance: float = Field(
        GAS_COST_PER_REBALANCE, ge=0, description="Transaction cost of one rebalance, in USD"
    )
    pool_liquidity: Optional[float] = Field(
        None, ge=0, description="Observed pool liquidity in USD, replaces the volume-derived estimate"
    )
    pool_volume_share: float = Field(
        1.0, ge=0, le=1,
        description="Fraction of market volume traded by the pool (1.0 without pool data)"
    )
    source: FeeSource = Field(FeeSource.DEFAULT, description="Origin of these parameters")

    @classmethod
    def from_pool_snapshot(
        cls,
        snapshot: 'PoolSnapshot',
        defaults: Optional['FeeModelParams'] = None,
    ) -> 'FeeModelParams':
        """
        Replace the assumed constants with observed pool data.

        Liquidity and fee rate are observed and the pool's share of market
        volume follows from its liquidity tier; the share cap and gas cost
        are kept from the defaults. A dead pool trades no volume, so it
        earns no fees.
        """
        defaults = defaults or cls()
        update = {
            "pool_liquidity": snapshot.total_liquidity,
            "pool_volume_share": pool_volume_share(snapshot.total_liquidity),
            "source": FeeSource.POOL,
        }
        if snapshot.fee_rate > 0:
            update["daily_fee_rate"] = snapshot.fee_rate
        return defaults.model_copy(update=update)


class SimulationState(BaseModel):
    """
    State threaded through one simulation run.

    Every step produces a new record; the token split is fixed on day 0 and
    only the band moves (ActiveRebalancing).
    """
    model_config = ConfigDict(frozen=True)

    day_index: int = Field(0, ge=0, description="Number of days processed")
    initial_price: float = Field(..., gt=0, description="Price on day 0")
    token_amount: float = Field(..., ge=0, description="Base tokens bought on day 0")
    quote_amount: float = Field(..., ge=0, description="Quote held on day 0")
    cumulative_fees: float = Field(0.0, ge=0, description="Fees earned so far")
    cumulative_gas_cost: float = Field(0.0, ge=0, description="Gas spent so far")
    rebalance_count: int = Field(0, ge=0, description="Rebalances so far")
    current_range: PriceRange = Field(..., description="Active band")
    current_range_center: float = Field(..., gt=0, description="Center of the active band")


class PoolSnapshot(BaseModel):
    """Live pool data used to enrich a run."""
    model_config = ConfigDict(frozen=True)

    pool_address: str = Field(..., description="On-chain pool address")
    total_liquidity: float = Field(..., ge=0, description="Pool liquidity in USD")
    base_reserve: float = Field(0.0, ge=0, description="Base token reserve in whole tokens")
    quote_reserve: float = Field(0.0, ge=0, description="Quote token reserve in whole tokens")
    base_decimals: int = Field(6, ge=0, description="Base token decimals")
    quote_decimals: int = Field(6, ge=0, description="Quote token decimals")
    fee_rate: float = Field(0.0, ge=0, description="Pool fee rate as a fraction")
    bin_step: Optional[int] = Field(None, description="Bin step in basis points")
    active_id: Optional[int] = Field(None, description="Active bin id")

    @property
    def is_active(self) -> bool:
        return self.total_liquidity > MIN_ACTIVE_POOL_LIQUIDITY


class ComparisonEntry(BaseModel):
    """Outcome of one strategy inside a comparison."""
    model_config = ConfigDict(frozen=True)

    strategy_kind: StrategyKind = Field(..., description="Simulated strategy")
    result: Optional[BacktestResult] = Field(None, description="Result if the run succeeded")
    error: Optional[str] = Field(None, description="Error message if the run failed")
    error_type: Optional[str] = Field(None, description="Error class name if the run failed")

    @model_validator(mode='after')
    def validate_outcome(self) -> 'ComparisonEntry':
        """Exactly one of result and error is set."""
        if (self.result is None) == (self.error is None):
            raise ValueError("exactly one of result and error must be provided")
        return self

    @property
    def succeeded(self) -> bool:
        return self.result is not None


class StrategyComparison(BaseModel):
    """Results of running every strategy kind against one price series."""
    model_config = ConfigDict(frozen=True)

    token_pair_id: str = Field(..., description="Token pair")
    entries: List[ComparisonEntry] = Field(..., description="One entry per strategy, in fixed order")

    @property
    def failures(self) -> Dict[str, str]:
        return {
            entry.strategy_kind.value: entry.error
            for entry in self.entries
            if not entry.succeeded
        }

    def raise_for_errors(self) -> None:
        """Raise StrategyComparisonError if any strategy failed."""
        if self.failures:
            raise StrategyComparisonError(self.failures)

    def result_for(self, kind: StrategyKind) -> Optional[BacktestResult]:
        for entry in self.entries:
            if entry.strategy_kind == kind:
                return entry.result
        return None

    def best(self) -> Optional[ComparisonEntry]:
        """Successful entry with the highest ROI, or None if all failed."""
        succeeded = [entry for entry in self.entries if entry.succeeded]
        if not succeeded:
            return None
        return max(succeeded, key=lambda entry: entry.result.roi)
