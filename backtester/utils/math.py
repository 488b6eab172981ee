import math
from typing import Tuple

from dlmm.errors import InvalidPriceError, InvalidVolumeError
from backtester.models import FeeModelParams


class LiquidityMath:
    """
    Float math helpers for a 50/50 LP position on a concentrated pool.
    """

    # -----------------------------
    # Position split
    # -----------------------------

    @staticmethod
    def split_investment(investment_amount: float, initial_price: float) -> Tuple[float, float]:
        """
        Split a USD investment 50/50 into base tokens and quote.

        Returns (token_amount, quote_amount), with
        token_amount * initial_price == quote_amount.
        """
        LiquidityMath._check_price(initial_price, "initial_price")
        quote_amount = investment_amount / 2
        token_amount = quote_amount / initial_price
        return token_amount, quote_amount

    # -----------------------------
    # Impermanent loss
    # -----------------------------

    @staticmethod
    def impermanent_loss(
        initial_price: float,
        current_price: float,
        token_amount: float,
        quote_amount: float,
    ) -> float:
        """
        Impermanent loss of a 50/50 position, in quote units.

        Compares holding the initial split against the constant-product
        value of the same capital at the new price:

            hold = token * P1 + quote
            lp   = 2 * sqrt(P1 / P0) * sqrt(token * P0 * quote)

        Args:
            initial_price: Price when the position was opened
            current_price: Price to evaluate at
            token_amount: Base tokens in the initial split
            quote_amount: Quote units in the initial split

        Returns:
            max(0, hold - lp)

        Raises:
            InvalidPriceError: If either price is non-positive or non-finite
        """
        LiquidityMath._check_price(initial_price, "initial_price")
        LiquidityMath._check_price(current_price, "current_price")

        ratio = current_price / initial_price
        hold_value = token_amount * current_price + quote_amount
        lp_value = 2 * math.sqrt(ratio) * math.sqrt(token_amount * initial_price * quote_amount)

        # clamp floating-point overshoot only
        return max(0.0, hold_value - lp_value)

    # -----------------------------
    # Fee accrual
    # -----------------------------

    @staticmethod
    def liquidity_share(
        investment_amount: float,
        day_volume: float,
        params: FeeModelParams,
    ) -> float:
        """
        Share of the pool attributed to the position, capped at
        params.liquidity_share_cap.

        The pool size is the observed pool liquidity when known, otherwise
        it is assumed to be day_volume * pool_size_to_volume_ratio.
        """
        LiquidityMath._check_volume(day_volume)

        if params.pool_liquidity is not None:
            pool_size = params.pool_liquidity + investment_amount
        else:
            pool_size = day_volume * params.pool_size_to_volume_ratio

        if pool_size <= 0:
            return params.liquidity_share_cap
        return min(investment_amount / pool_size, params.liquidity_share_cap)

    @staticmethod
    def daily_fee(
        investment_amount: float,
        day_volume: float,
        params: FeeModelParams,
        share_multiplier: float = 1.0,
    ) -> float:
        """
        Fee income for one in-range day.

        fee = pool_volume * daily_fee_rate * liquidity_share * share_multiplier

        pool_volume is the market volume scaled by params.pool_volume_share,
        which stays 1.0 unless observed pool data is in use.
        """
        LiquidityMath._check_volume(day_volume)
        if day_volume == 0:
            return 0.0

        share = LiquidityMath.liquidity_share(investment_amount, day_volume, params)
        pool_volume = day_volume * params.pool_volume_share
        return pool_volume * params.daily_fee_rate * share * share_multiplier

    # -----------------------------
    # Guards
    # -----------------------------

    @staticmethod
    def _check_price(price: float, name: str) -> None:
        if not math.isfinite(price) or price <= 0:
            raise InvalidPriceError(f"{name} must be a positive finite number, got {price}")

    @staticmethod
    def _check_volume(volume: float) -> None:
        if not math.isfinite(volume) or volume < 0:
            raise InvalidVolumeError(f"volume must be a non-negative finite number, got {volume}")
