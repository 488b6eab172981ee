"""
Package containing the shared models of the DLMM strategy backtester.

This package defines the value objects and the error taxonomy exchanged
between the simulation core, the real-data adapter and the request surface.

NOTE: Engine-internal models are in backtester.models
"""

from dlmm.models import (
    StrategyKind,
    FeeSource,
    PricePoint,
    PriceRange,
    StrategyConfig,
    DailyResult,
    BacktestSummary,
    PoolHealth,
    BacktestResult,
)
from dlmm.errors import (
    BacktestError,
    InvalidPriceError,
    InvalidPriceDataError,
    InvalidVolumeError,
    InvalidRangeError,
    EmptyBreakdownError,
    StrategyComparisonError,
)

__all__ = [
    # Models
    "StrategyKind",
    "FeeSource",
    "PricePoint",
    "PriceRange",
    "StrategyConfig",
    "DailyResult",
    "BacktestSummary",
    "PoolHealth",
    "BacktestResult",
    # Errors
    "BacktestError",
    "InvalidPriceError",
    "InvalidPriceDataError",
    "InvalidVolumeError",
    "InvalidRangeError",
    "EmptyBreakdownError",
    "StrategyComparisonError",
]
