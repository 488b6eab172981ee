"""
Tests for band placement and rebalancing.
"""
import math

import pytest

from dlmm import InvalidPriceDataError, InvalidRangeError, PriceRange, StrategyConfig, StrategyKind
from backtester.models import SimulationState
from backtester.range_policy import (
    ActiveRebalancingPolicy,
    ConcentratedRangePolicy,
    WideRangePolicy,
    policy_for,
)


def opening_state(price=100.0, policy=None):
    policy = policy or ActiveRebalancingPolicy(0.05)
    band, _ = policy.open_range(price)
    return SimulationState(
        initial_price=price,
        token_amount=5.0,
        quote_amount=500.0,
        current_range=band,
        current_range_center=price,
    )


class TestConcentratedRangePolicy:
    def test_missing_range_uses_default_band(self):
        band, corrected = ConcentratedRangePolicy(None).open_range(50.0)
        assert band.min_price == pytest.approx(48.0)
        assert band.max_price == pytest.approx(52.0)
        assert corrected is False

    def test_keeps_range_containing_first_price(self):
        requested = PriceRange(min_price=49.0, max_price=52.0)
        band, corrected = ConcentratedRangePolicy(requested).open_range(50.0)
        assert band == requested
        assert corrected is False

    def test_first_price_on_boundary_is_contained(self):
        requested = PriceRange(min_price=50.0, max_price=55.0)
        band, corrected = ConcentratedRangePolicy(requested).open_range(50.0)
        assert band == requested
        assert corrected is False

    @pytest.mark.parametrize("min_price,max_price", [
        (60.0, 70.0),    # misses the first price
        (52.0, 49.0),    # inverted
        (0.0, 100.0),    # non-positive
    ])
    def test_corrects_unusable_range(self, min_price, max_price):
        requested = PriceRange(min_price=min_price, max_price=max_price)
        band, corrected = ConcentratedRangePolicy(requested).open_range(50.0)
        assert corrected is True
        assert band.min_price == pytest.approx(48.0)
        assert band.max_price == pytest.approx(52.0)

    def test_strict_mode_raises(self):
        requested = PriceRange(min_price=60.0, max_price=70.0)
        with pytest.raises(InvalidRangeError):
            ConcentratedRangePolicy(requested, strict=True).open_range(50.0)

    def test_strict_mode_without_range_uses_default(self):
        band, corrected = ConcentratedRangePolicy(None, strict=True).open_range(50.0)
        assert band.contains(50.0)
        assert corrected is False

    @pytest.mark.parametrize("price", [0.0, -1.0, math.nan])
    def test_rejects_bad_first_price(self, price):
        with pytest.raises(InvalidPriceDataError):
            ConcentratedRangePolicy(None).open_range(price)

    def test_band_never_moves(self):
        policy = ConcentratedRangePolicy(None)
        state = opening_state(policy=policy)
        assert policy.advance(state, 150.0, 0.01) is state


class TestWideRangePolicy:
    def test_twenty_percent_band(self):
        band, corrected = WideRangePolicy().open_range(100.0)
        assert band.min_price == pytest.approx(80.0)
        assert band.max_price == pytest.approx(120.0)
        assert corrected is False

    def test_diluted_share(self):
        assert WideRangePolicy().liquidity_share_multiplier == 0.5


class TestActiveRebalancingPolicy:
    def test_no_rebalance_within_threshold(self):
        policy = ActiveRebalancingPolicy(0.05)
        state = opening_state()
        assert policy.advance(state, 105.0, 0.01) is state

    def test_rebalance_beyond_threshold(self):
        policy = ActiveRebalancingPolicy(0.05)
        state = opening_state()

        advanced = policy.advance(state, 106.0, 0.01)

        assert advanced.rebalance_count == 1
        assert advanced.cumulative_gas_cost == pytest.approx(0.01)
        assert advanced.current_range_center == 106.0
        assert advanced.current_range.min_price == pytest.approx(106.0 * 0.96)
        assert advanced.current_range.max_price == pytest.approx(106.0 * 1.04)
        # The previous state is untouched
        assert state.rebalance_count == 0

    def test_downward_moves_rebalance_too(self):
        policy = ActiveRebalancingPolicy(0.05)
        assert policy.should_rebalance(100.0, 94.0)
        assert not policy.should_rebalance(100.0, 95.0)


@pytest.mark.parametrize("kind,policy_type", [
    (StrategyKind.CONCENTRATED, ConcentratedRangePolicy),
    (StrategyKind.WIDE, WideRangePolicy),
    (StrategyKind.ACTIVE_REBALANCING, ActiveRebalancingPolicy),
])
def test_policy_for(kind, policy_type):
    config = StrategyConfig(investment_amount=1000.0, strategy_kind=kind, token_pair_id="SOL/USDC")
    assert isinstance(policy_for(config), policy_type)
