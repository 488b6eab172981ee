"""
Strategy comparison: runs every strategy kind against the same price series.
"""
import asyncio
import logging
from typing import List, Optional, Sequence

from dlmm import (
    BacktestError,
    PricePoint,
    PriceRange,
    StrategyConfig,
    StrategyKind,
)
from backtester.models import ComparisonEntry, StrategyComparison
from backtester.simulator import BacktestSimulator
from backtester.utils.env import DEFAULT_REBALANCE_THRESHOLD

logger = logging.getLogger(__name__)

# Fixed order of the entries of every comparison
STRATEGY_ORDER = (
    StrategyKind.CONCENTRATED,
    StrategyKind.WIDE,
    StrategyKind.ACTIVE_REBALANCING,
)


class StrategyComparator:
    """
    Fans one price series out to a simulation per strategy kind.

    Runs share nothing but the immutable price series, so they execute
    concurrently in worker threads. A run that fails with a BacktestError
    is reported in its own entry; the comparison always has one entry per
    strategy kind.
    """

    def __init__(self, simulator: Optional[BacktestSimulator] = None):
        self.simulator = simulator or BacktestSimulator()

    def build_configs(
        self,
        investment_amount: float,
        token_pair_id: str,
        concentrated_range: Optional[PriceRange] = None,
        rebalance_threshold: Optional[float] = None,
    ) -> List[StrategyConfig]:
        """Configurations of the three runs, in STRATEGY_ORDER."""
        threshold = rebalance_threshold or DEFAULT_REBALANCE_THRESHOLD
        return [
            StrategyConfig(
                investment_amount=investment_amount,
                strategy_kind=kind,
                initial_range=concentrated_range if kind == StrategyKind.CONCENTRATED else None,
                rebalance_threshold=threshold,
                token_pair_id=token_pair_id,
            )
            for kind in STRATEGY_ORDER
        ]

    async def _run_one(
        self,
        config: StrategyConfig,
        price_series: Sequence[PricePoint],
    ) -> ComparisonEntry:
        try:
            result = await asyncio.to_thread(self.simulator.simulate, config, price_series)
        except BacktestError as e:
            logger.warning(f"{config.strategy_kind.value} strategy failed: {e}")
            return ComparisonEntry(
                strategy_kind=config.strategy_kind,
                error=str(e),
                error_type=type(e).__name__,
            )
        return ComparisonEntry(strategy_kind=config.strategy_kind, result=result)

    async def compare(
        self,
        price_series: Sequence[PricePoint],
        investment_amount: float,
        token_pair_id: str,
        concentrated_range: Optional[PriceRange] = None,
        rebalance_threshold: Optional[float] = None,
    ) -> StrategyComparison:
        """
        Compare Concentrated, Wide and ActiveRebalancing on one series.

        Args:
            price_series: Ordered daily price points
            investment_amount: Capital deployed by every strategy, in USD
            token_pair_id: Token pair
            concentrated_range: Requested band for the concentrated run
            rebalance_threshold: Threshold for the rebalancing run

        Returns:
            StrategyComparison with one entry per strategy, in STRATEGY_ORDER
        """
        configs = self.build_configs(
            investment_amount, token_pair_id, concentrated_range, rebalance_threshold
        )
        series = list(price_series)

        entries = await asyncio.gather(
            *[self._run_one(config, series) for config in configs]
        )

        comparison = StrategyComparison(token_pair_id=token_pair_id, entries=list(entries))
        if comparison.failures:
            logger.warning(f"Comparison for {token_pair_id} had failures: {comparison.failures}")
        else:
            best = comparison.best()
            logger.info(
                f"Comparison for {token_pair_id}: best strategy "
                f"{best.strategy_kind.value} (ROI {best.result.roi:.2f}%)"
            )
        return comparison
