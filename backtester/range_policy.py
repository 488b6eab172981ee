"""
Range policies: how each strategy kind places and moves its price band.

A policy is selected once per run with policy_for() and then consulted by
the simulator on every day.
"""
import logging
import math
from abc import ABC, abstractmethod
from typing import Optional, Tuple

from dlmm import (
    PriceRange,
    StrategyConfig,
    StrategyKind,
    InvalidPriceDataError,
    InvalidRangeError,
)
from backtester.models import SimulationState

logger = logging.getLogger(__name__)

# Half widths of the bands, as fractions of the center price
DEFAULT_BAND_HALF_WIDTH = 0.04
WIDE_BAND_HALF_WIDTH = 0.20
REBALANCE_BAND_HALF_WIDTH = 0.04

# The same capital spread over a much wider band earns a diluted share
WIDE_LIQUIDITY_SHARE_MULTIPLIER = 0.5


class RangePolicy(ABC):
    """Band placement for one strategy kind."""

    kind: StrategyKind
    liquidity_share_multiplier: float = 1.0

    @abstractmethod
    def open_range(self, first_price: float) -> Tuple[PriceRange, bool]:
        """
        Band for day 0.

        Returns:
            Tuple of (band, auto_corrected)
        """
        pass

    def advance(
        self,
        state: SimulationState,
        price: float,
        gas_cost_per_rebalance: float,
    ) -> SimulationState:
        """Apply this policy's mutation for a new day. Static bands never move."""
        return state


class ConcentratedRangePolicy(RangePolicy):
    """
    Fixed band chosen by the caller.

    A missing band gets the default band around the first price. An
    inverted or non-positive band, or one that does not contain the first
    price, is replaced by the default band unless strict is set.
    """

    kind = StrategyKind.CONCENTRATED

    def __init__(self, requested_range: Optional[PriceRange], strict: bool = False):
        self.requested_range = requested_range
        self.strict = strict

    def open_range(self, first_price: float) -> Tuple[PriceRange, bool]:
        if not math.isfinite(first_price) or first_price <= 0:
            raise InvalidPriceDataError(
                f"Cannot place a band around first price {first_price}"
            )

        default_range = PriceRange.band(first_price, DEFAULT_BAND_HALF_WIDTH)
        if self.requested_range is None:
            return default_range, False

        requested = self.requested_range
        if requested.is_valid and requested.contains(first_price):
            return requested, False

        reason = (
            f"range [{requested.min_price}, {requested.max_price}] is invalid"
            if not requested.is_valid
            else f"range [{requested.min_price}, {requested.max_price}] "
                 f"does not contain first price {first_price}"
        )
        if self.strict:
            raise InvalidRangeError(reason.capitalize())

        logger.warning(
            f"Concentrated {reason}; using default band "
            f"[{default_range.min_price:.6g}, {default_range.max_price:.6g}]"
        )
        return default_range, True


class WideRangePolicy(RangePolicy):
    """Fixed +/-20% band around the first price."""

    kind = StrategyKind.WIDE
    liquidity_share_multiplier = WIDE_LIQUIDITY_SHARE_MULTIPLIER

    def open_range(self, first_price: float) -> Tuple[PriceRange, bool]:
        return PriceRange.band(first_price, WIDE_BAND_HALF_WIDTH), False


class ActiveRebalancingPolicy(RangePolicy):
    """
    +/-4% band recentered on the current price whenever the price drifts
    more than the threshold away from the band center.
    """

    kind = StrategyKind.ACTIVE_REBALANCING

    def __init__(self, rebalance_threshold: float):
        self.rebalance_threshold = rebalance_threshold

    def open_range(self, first_price: float) -> Tuple[PriceRange, bool]:
        return PriceRange.band(first_price, REBALANCE_BAND_HALF_WIDTH), False

    def should_rebalance(self, center: float, price: float) -> bool:
        deviation = abs(price - center) / center
        return deviation > self.rebalance_threshold

    def advance(
        self,
        state: SimulationState,
        price: float,
        gas_cost_per_rebalance: float,
    ) -> SimulationState:
        if not self.should_rebalance(state.current_range_center, price):
            return state

        logger.debug(
            f"Rebalance on day {state.day_index}: center "
            f"{state.current_range_center} -> {price}"
        )
        return state.model_copy(update={
            "current_range": PriceRange.band(price, REBALANCE_BAND_HALF_WIDTH),
            "current_range_center": price,
            "rebalance_count": state.rebalance_count + 1,
            "cumulative_gas_cost": state.cumulative_gas_cost + gas_cost_per_rebalance,
        })


def policy_for(config: StrategyConfig) -> RangePolicy:
    """Select the range policy of a run."""
    if config.strategy_kind == StrategyKind.CONCENTRATED:
        return ConcentratedRangePolicy(config.initial_range, strict=config.strict_range)
    if config.strategy_kind == StrategyKind.WIDE:
        return WideRangePolicy()
    if config.strategy_kind == StrategyKind.ACTIVE_REBALANCING:
        return ActiveRebalancingPolicy(config.rebalance_threshold)
    raise ValueError(f"Unknown strategy kind: {config.strategy_kind}")
