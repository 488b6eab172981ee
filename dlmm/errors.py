"""
Error taxonomy of the backtest core.

Every error raised by the simulator, the range policies, the fee model and
the aggregator derives from BacktestError, so callers can tell "the input
was invalid" apart from failures of upstream feeds.
"""


class BacktestError(ValueError):
    """Base class for all errors raised by the backtest core."""


class InvalidPriceError(BacktestError):
    """A price is non-positive or non-finite."""


class InvalidPriceDataError(InvalidPriceError):
    """A price series is empty, unordered, or contains an invalid price."""


class InvalidVolumeError(BacktestError):
    """A volume is negative or non-finite."""


class InvalidRangeError(BacktestError):
    """A caller-supplied price range is inverted, non-positive or unusable."""


class EmptyBreakdownError(BacktestError):
    """Aggregation was attempted on a breakdown with zero days."""


class StrategyComparisonError(BacktestError):
    """One or more strategies of a comparison failed."""

    def __init__(self, failures):
        self.failures = dict(failures)
        details = ", ".join(
            f"{kind}: {message}" for kind, message in self.failures.items()
        )
        super().__init__(f"Strategy comparison failed ({details})")
