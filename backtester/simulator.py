"""
Backtest simulator for DLMM LP strategies.

Walks a daily price series for one strategy configuration and produces a
day-by-day breakdown, then hands it to the ResultAggregator:
- Range policy decides the active band (and rebalances for active management)
- Fee accrual only on in-range days
- Impermanent loss against holding the day-0 split
"""
import logging
from typing import List, Optional, Sequence, Tuple

from dlmm import BacktestResult, DailyResult, PricePoint, StrategyConfig
from backtester.aggregator import ResultAggregator
from backtester.models import FeeModelParams, SimulationState
from backtester.range_policy import RangePolicy, policy_for
from backtester.utils.math import LiquidityMath
from backtester.validation import PriceSeriesValidator

logger = logging.getLogger(__name__)


class BacktestSimulator:
    """
    Simulates one LP strategy over a daily price series.

    The simulation is a fold over the series: every day maps the previous
    SimulationState to a new one plus an immutable DailyResult. The
    simulator itself keeps no per-run state and can be shared between
    concurrent runs.
    """

    def __init__(
        self,
        fee_params: Optional[FeeModelParams] = None,
        aggregator: Optional[ResultAggregator] = None,
        validator: Optional[PriceSeriesValidator] = None,
    ):
        """
        Initialize simulator.

        Args:
            fee_params: Fee model constants (defaults from the environment)
            aggregator: Result aggregator
            validator: Price series validator
        """
        self.fee_params = fee_params or FeeModelParams()
        self.aggregator = aggregator or ResultAggregator()
        self.validator = validator or PriceSeriesValidator()

    def initial_state(
        self,
        config: StrategyConfig,
        policy: RangePolicy,
        first_point: PricePoint,
    ) -> Tuple[SimulationState, bool]:
        """
        Build the state before day 0.

        Returns:
            Tuple of (state, range_auto_corrected)
        """
        opening_range, auto_corrected = policy.open_range(first_point.price)
        token_amount, quote_amount = LiquidityMath.split_investment(
            config.investment_amount, first_point.price
        )
        state = SimulationState(
            initial_price=first_point.price,
            token_amount=token_amount,
            quote_amount=quote_amount,
            current_range=opening_range,
            current_range_center=first_point.price,
        )
        return state, auto_corrected

    def step(
        self,
        config: StrategyConfig,
        policy: RangePolicy,
        state: SimulationState,
        point: PricePoint,
    ) -> Tuple[SimulationState, DailyResult]:
        """
        Simulate a single day.

        Args:
            config: Run configuration
            policy: Range policy of the run
            state: State after the previous day
            point: Price point of the day

        Returns:
            Tuple of (new_state, daily_result)
        """
        # 1. Range policy mutation (recentering happens before the range check)
        advanced = policy.advance(state, point.price, self.fee_params.gas_cost_per_rebalance)
        rebalanced = advanced.rebalance_count > state.rebalance_count

        # 2. In-range predicate
        in_range = advanced.current_range.contains(point.price)

        # 3. Fees
        daily_fees = 0.0
        if in_range:
            daily_fees = LiquidityMath.daily_fee(
                config.investment_amount,
                point.volume,
                self.fee_params,
                policy.liquidity_share_multiplier,
            )
        cumulative_fees = advanced.cumulative_fees + daily_fees

        # 4. Impermanent loss against the day-0 split
        impermanent_loss = LiquidityMath.impermanent_loss(
            advanced.initial_price,
            point.price,
            advanced.token_amount,
            advanced.quote_amount,
        )

        # 5. Net P&L (gas is only ever spent by rebalancing policies)
        net_pl = cumulative_fees - impermanent_loss - advanced.cumulative_gas_cost

        new_state = advanced.model_copy(update={
            "day_index": advanced.day_index + 1,
            "cumulative_fees": cumulative_fees,
        })
        daily_result = DailyResult(
            date=point.timestamp,
            price=point.price,
            in_range=in_range,
            daily_fees=daily_fees,
            cumulative_fees=cumulative_fees,
            impermanent_loss=impermanent_loss,
            net_pl=net_pl,
            range_min=advanced.current_range.min_price,
            range_max=advanced.current_range.max_price,
            rebalanced=rebalanced,
            cumulative_gas_cost=advanced.cumulative_gas_cost,
        )
        return new_state, daily_result

    def run(
        self,
        config: StrategyConfig,
        price_series: Sequence[PricePoint],
    ) -> Tuple[List[DailyResult], SimulationState, bool]:
        """
        Produce the daily breakdown of a run.

        All validation happens before day 0, so a failed run never yields a
        partial breakdown.

        Returns:
            Tuple of (daily_breakdown, opening_state, range_auto_corrected)
        """
        self.validator.validate(price_series)
        policy = policy_for(config)
        opening_state, auto_corrected = self.initial_state(config, policy, price_series[0])

        state = opening_state
        daily_breakdown: List[DailyResult] = []
        for point in price_series:
            state, daily_result = self.step(config, policy, state, point)
            daily_breakdown.append(daily_result)

        return daily_breakdown, opening_state, auto_corrected

    def simulate(
        self,
        config: StrategyConfig,
        price_series: Sequence[PricePoint],
    ) -> BacktestResult:
        """
        Run a full backtest for one strategy configuration.

        Args:
            config: Strategy configuration
            price_series: Ordered daily price points (at least one)

        Returns:
            BacktestResult

        Raises:
            BacktestError: On any invalid configuration or data point
        """
        logger.info(
            f"Simulating {config.strategy_kind.value} strategy for {config.token_pair_id} "
            f"over {len(price_series)} days (${config.investment_amount:,.2f})"
        )

        daily_breakdown, opening_state, auto_corrected = self.run(config, price_series)
        result = self.aggregator.aggregate(
            config,
            daily_breakdown,
            applied_range=opening_state.current_range,
            range_auto_corrected=auto_corrected,
        )
        result = result.model_copy(update={"fee_source": self.fee_params.source})

        logger.info(
            f"Completed {config.strategy_kind.value} backtest: fees=${result.total_fees:.2f}, "
            f"IL=${result.impermanent_loss:.2f}, ROI={result.roi:.2f}%, "
            f"time in range={result.time_in_range:.1f}%"
        )
        return result
