"""
Result aggregation: turns a day-by-day breakdown into a BacktestResult.
"""
from typing import Optional, Sequence

from dlmm import (
    BacktestResult,
    BacktestSummary,
    DailyResult,
    PriceRange,
    StrategyConfig,
    StrategyKind,
    EmptyBreakdownError,
)


class ResultAggregator:
    """
    Derives the headline metrics of a run from its daily breakdown.

    Everything is computed from the breakdown and the investment amount;
    the aggregator holds no state of its own.
    """

    def aggregate(
        self,
        config: StrategyConfig,
        daily_breakdown: Sequence[DailyResult],
        applied_range: Optional[PriceRange] = None,
        range_auto_corrected: bool = False,
    ) -> BacktestResult:
        """
        Build the BacktestResult of a run.

        Args:
            config: Configuration the run was simulated with
            daily_breakdown: One DailyResult per simulated day, in order
            applied_range: Band used on day 0
            range_auto_corrected: Whether the requested band was replaced

        Returns:
            BacktestResult

        Raises:
            EmptyBreakdownError: If the breakdown has no days
        """
        if not daily_breakdown:
            raise EmptyBreakdownError("Cannot aggregate an empty daily breakdown")

        final_day = daily_breakdown[-1]
        total_days = len(daily_breakdown)
        days_in_range = sum(1 for day in daily_breakdown if day.in_range)
        daily_fees = [day.daily_fees for day in daily_breakdown]

        requested_range = None
        if config.strategy_kind == StrategyKind.CONCENTRATED:
            requested_range = config.initial_range

        rebalance_count = None
        total_gas_costs = None
        if config.strategy_kind == StrategyKind.ACTIVE_REBALANCING:
            rebalance_count = sum(1 for day in daily_breakdown if day.rebalanced)
            total_gas_costs = final_day.cumulative_gas_cost

        summary = BacktestSummary(
            best_day=max(daily_fees),
            worst_day=min(daily_fees),
            avg_daily_fees=final_day.cumulative_fees / total_days,
            rebalance_count=rebalance_count,
            total_gas_costs=total_gas_costs,
        )

        return BacktestResult(
            strategy_kind=config.strategy_kind,
            token_pair_id=config.token_pair_id,
            total_investment=config.investment_amount,
            total_fees=final_day.cumulative_fees,
            impermanent_loss=final_day.impermanent_loss,
            net_profit=final_day.net_pl,
            roi=final_day.net_pl / config.investment_amount * 100,
            time_in_range=days_in_range / total_days * 100,
            daily_breakdown=list(daily_breakdown),
            summary=summary,
            requested_range=requested_range,
            applied_range=applied_range,
            range_auto_corrected=range_auto_corrected,
        )
