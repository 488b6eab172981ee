"""
Backtester service: the real-data adapter around the simulator.

This module enriches simulations with live pool data when it is available:
- Observed pool liquidity and fee rate replace the assumed constants, and
  only the pool's tiered share of market volume earns fees
- A pool health snapshot with warnings is attached to every result
- Any pool-feed failure falls back to the default constants
"""
import asyncio
import logging
from typing import Optional, Sequence, Tuple

from dlmm import BacktestResult, PoolHealth, PricePoint, PriceRange, StrategyConfig
from backtester.comparator import StrategyComparator
from backtester.models import FeeModelParams, PoolSnapshot, StrategyComparison
from backtester.services.pool_feed import PoolDataSource
from backtester.simulator import BacktestSimulator

logger = logging.getLogger(__name__)

# Pool health thresholds, in USD and as share of pool
LOW_LIQUIDITY = 100_000
UNREALISTIC_POOL_SHARE = 0.10
LARGE_POOL_SHARE = 0.05


def pool_warning(snapshot: PoolSnapshot, investment_amount: float) -> Optional[str]:
    """Caveat about a pool for a given investment, or None."""
    if not snapshot.is_active:
        return (
            f"Extremely low liquidity (${snapshot.total_liquidity:.2f}) - "
            f"no trading fees will accrue"
        )

    if snapshot.total_liquidity < LOW_LIQUIDITY:
        return (
            f"Low liquidity pool (${snapshot.total_liquidity:,.0f}) - "
            f"limited trading activity expected"
        )

    investment_share = investment_amount / (snapshot.total_liquidity + investment_amount)
    if investment_share > UNREALISTIC_POOL_SHARE:
        return (
            f"Your ${investment_amount:,.0f} investment is {investment_share:.1%} of pool - "
            f"results may be unrealistic"
        )

    if investment_share > LARGE_POOL_SHARE:
        return (
            f"Large position ({investment_share:.1%} of pool) - "
            f"consider smaller test amount first"
        )

    return None


def average_daily_volume(price_series: Sequence[PricePoint]) -> float:
    if not price_series:
        return 0.0
    return sum(point.volume for point in price_series) / len(price_series)


class BacktesterService:
    """
    Runs backtests with optional live pool enrichment.

    The fallback to default constants is part of the contract: a missing
    or failing pool source never fails a backtest.
    """

    def __init__(
        self,
        pool_source: Optional[PoolDataSource] = None,
        default_fee_params: Optional[FeeModelParams] = None,
    ):
        """
        Initialize backtester service.

        Args:
            pool_source: Live pool data source (None disables enrichment)
            default_fee_params: Fee model constants used without pool data
        """
        self.pool_source = pool_source
        self.default_fee_params = default_fee_params or FeeModelParams()

    async def _load_pool(self, token_pair_id: str) -> Optional[PoolSnapshot]:
        if self.pool_source is None:
            return None
        try:
            return await self.pool_source.get_pool_snapshot(token_pair_id)
        except Exception as e:
            logger.warning(
                f"Pool data unavailable for {token_pair_id}, using default fee model: {e}"
            )
            return None

    async def resolve_fee_params(
        self,
        token_pair_id: str,
    ) -> Tuple[FeeModelParams, Optional[PoolSnapshot]]:
        """
        Fee parameters for a pair, plus the snapshot they came from.

        Returns:
            Tuple of (fee_params, snapshot or None)
        """
        snapshot = await self._load_pool(token_pair_id)
        if snapshot is None:
            return self.default_fee_params, None

        fee_params = FeeModelParams.from_pool_snapshot(snapshot, self.default_fee_params)
        if not snapshot.is_active:
            logger.warning(
                f"Pool {snapshot.pool_address} is inactive "
                f"(${snapshot.total_liquidity:,.2f}), no fees will accrue"
            )
        return fee_params, snapshot

    def _pool_health(
        self,
        snapshot: PoolSnapshot,
        fee_params: FeeModelParams,
        price_series: Sequence[PricePoint],
        investment_amount: float,
    ) -> PoolHealth:
        return PoolHealth(
            total_liquidity=snapshot.total_liquidity,
            volume_24h=average_daily_volume(price_series) * fee_params.pool_volume_share,
            is_active=snapshot.is_active,
            pool_address=snapshot.pool_address,
            warning=pool_warning(snapshot, investment_amount),
        )

    async def simulate(
        self,
        config: StrategyConfig,
        price_series: Sequence[PricePoint],
    ) -> BacktestResult:
        """
        Run one backtest, enriched with pool data when available.

        Args:
            config: Strategy configuration
            price_series: Ordered daily price points

        Returns:
            BacktestResult, with pool_health set when pool data was loaded
        """
        fee_params, snapshot = await self.resolve_fee_params(config.token_pair_id)
        simulator = BacktestSimulator(fee_params=fee_params)
        result = await asyncio.to_thread(simulator.simulate, config, price_series)

        if snapshot is not None:
            health = self._pool_health(snapshot, fee_params, price_series, config.investment_amount)
            result = result.model_copy(update={"pool_health": health})
        return result

    async def compare(
        self,
        price_series: Sequence[PricePoint],
        investment_amount: float,
        token_pair_id: str,
        concentrated_range: Optional[PriceRange] = None,
        rebalance_threshold: Optional[float] = None,
    ) -> StrategyComparison:
        """
        Compare all strategies on one series with a single pool lookup.
        """
        fee_params, snapshot = await self.resolve_fee_params(token_pair_id)
        comparator = StrategyComparator(BacktestSimulator(fee_params=fee_params))
        comparison = await comparator.compare(
            price_series,
            investment_amount,
            token_pair_id,
            concentrated_range=concentrated_range,
            rebalance_threshold=rebalance_threshold,
        )

        if snapshot is None:
            return comparison

        health = self._pool_health(snapshot, fee_params, price_series, investment_amount)
        entries = [
            entry.model_copy(update={"result": entry.result.model_copy(update={"pool_health": health})})
            if entry.succeeded else entry
            for entry in comparison.entries
        ]
        return comparison.model_copy(update={"entries": entries})
