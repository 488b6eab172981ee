"""
Framework-free request surface.

Every handler takes a raw JSON-like payload and returns a (status, body)
tuple, so it can be mounted on any HTTP framework. Handlers only validate
input and shape responses:
- 400 for missing or invalid parameters
- 404 when the price feed has no data
- 500 for anything else
"""
import logging
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from dlmm import (
    BacktestError,
    InvalidRangeError,
    PriceRange,
    StrategyConfig,
    StrategyKind,
)
from backtester.services.backtester import BacktesterService
from backtester.services.price_feed import (
    FallbackPriceFeed,
    LookbackPeriod,
    NoPriceDataError,
    PriceFeed,
)

logger = logging.getLogger(__name__)

Response = Tuple[int, Dict[str, Any]]


class PriceDataRequest(BaseModel):
    """Request for the raw price series of a pair."""
    model_config = ConfigDict(populate_by_name=True)

    token_pair: str = Field(..., alias="tokenPair", min_length=1, description="Token pair, e.g. 'SOL/USDC'")
    time_period: LookbackPeriod = Field(
        LookbackPeriod.MONTH, alias="timePeriod", description="History length"
    )


class BacktestRequest(PriceDataRequest):
    """Request for a single strategy backtest."""

    investment_amount: float = Field(
        ..., alias="investmentAmount", gt=0, allow_inf_nan=False, description="Capital deployed, in USD"
    )
    strategy_kind: StrategyKind = Field(..., alias="strategyKind", description="Strategy to simulate")
    initial_range: Optional[PriceRange] = Field(None, alias="initialRange", description="Concentrated band")
    rebalance_threshold: Optional[float] = Field(
        None, alias="rebalanceThreshold", gt=0.0, le=1.0, description="Rebalance trigger"
    )
    strict_range: bool = Field(False, alias="strictRange", description="Reject unusable ranges")

    def to_config(self) -> StrategyConfig:
        fields = {
            "investment_amount": self.investment_amount,
            "strategy_kind": self.strategy_kind,
            "initial_range": self.initial_range,
            "token_pair_id": self.token_pair,
            "strict_range": self.strict_range,
        }
        if self.rebalance_threshold is not None:
            fields["rebalance_threshold"] = self.rebalance_threshold
        return StrategyConfig(**fields)


class ComparisonRequest(PriceDataRequest):
    """Request for a comparison of every strategy kind."""

    investment_amount: float = Field(
        ..., alias="investmentAmount", gt=0, allow_inf_nan=False, description="Capital deployed, in USD"
    )
    initial_range: Optional[PriceRange] = Field(None, alias="initialRange", description="Concentrated band")
    rebalance_threshold: Optional[float] = Field(
        None, alias="rebalanceThreshold", gt=0.0, le=1.0, description="Rebalance trigger"
    )


def _error(status: int, message: str) -> Response:
    return status, {"success": False, "error": message}


def _invalid_request(e: ValidationError) -> Response:
    details = "; ".join(
        f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}" for err in e.errors()
    )
    logger.warning(f"Rejected request: {details}")
    return _error(400, f"Invalid request: {details}")


async def _fetch_series(price_feed: PriceFeed, request: PriceDataRequest):
    return await price_feed.get_price_series(request.token_pair, request.time_period)


async def get_price_data(
    payload: Dict[str, Any],
    price_feed: Optional[PriceFeed] = None,
) -> Response:
    """Return the daily price series of a pair."""
    try:
        request = PriceDataRequest.model_validate(payload)
    except ValidationError as e:
        return _invalid_request(e)

    price_feed = price_feed or FallbackPriceFeed.default()
    try:
        series = await _fetch_series(price_feed, request)
    except NoPriceDataError as e:
        return _error(404, str(e))
    except Exception as e:
        logger.error(f"Error fetching price data for {request.token_pair}: {e}", exc_info=True)
        return _error(500, "Failed to fetch price data")

    if not series:
        return _error(404, f"No price data for {request.token_pair}")

    return 200, {
        "success": True,
        "data": [point.model_dump(mode="json") for point in series],
    }


async def run_backtest(
    payload: Dict[str, Any],
    price_feed: Optional[PriceFeed] = None,
    service: Optional[BacktesterService] = None,
) -> Response:
    """Run one strategy over the history of a pair."""
    try:
        request = BacktestRequest.model_validate(payload)
        config = request.to_config()
    except ValidationError as e:
        return _invalid_request(e)

    price_feed = price_feed or FallbackPriceFeed.default()
    service = service or BacktesterService()
    try:
        series = await _fetch_series(price_feed, request)
        if not series:
            return _error(404, f"No price data for {request.token_pair}")
        result = await service.simulate(config, series)
    except NoPriceDataError as e:
        return _error(404, str(e))
    except InvalidRangeError as e:
        logger.warning(f"Rejected range for {request.token_pair}: {e}")
        return _error(400, str(e))
    except BacktestError as e:
        logger.error(f"Backtest failed for {request.token_pair}: {e}", exc_info=True)
        return _error(500, str(e))
    except Exception as e:
        logger.error(f"Unexpected error during backtest for {request.token_pair}: {e}", exc_info=True)
        return _error(500, "Internal error")

    return 200, {
        "success": True,
        "data": result.model_dump(mode="json", exclude_none=True),
    }


async def run_comparison(
    payload: Dict[str, Any],
    price_feed: Optional[PriceFeed] = None,
    service: Optional[BacktesterService] = None,
) -> Response:
    """
    Run every strategy over the history of a pair.

    A strategy that fails does not fail the request: its entry carries the
    error instead of a result.
    """
    try:
        request = ComparisonRequest.model_validate(payload)
    except ValidationError as e:
        return _invalid_request(e)

    price_feed = price_feed or FallbackPriceFeed.default()
    service = service or BacktesterService()
    try:
        series = await _fetch_series(price_feed, request)
        if not series:
            return _error(404, f"No price data for {request.token_pair}")
        comparison = await service.compare(
            series,
            request.investment_amount,
            request.token_pair,
            concentrated_range=request.initial_range,
            rebalance_threshold=request.rebalance_threshold,
        )
    except NoPriceDataError as e:
        return _error(404, str(e))
    except Exception as e:
        logger.error(f"Unexpected error during comparison for {request.token_pair}: {e}", exc_info=True)
        return _error(500, "Internal error")

    best = comparison.best()
    return 200, {
        "success": True,
        "data": comparison.model_dump(mode="json", exclude_none=True),
        "best_strategy": best.strategy_kind.value if best else None,
    }
