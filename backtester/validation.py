"""
Validation of untrusted price series.
"""
import logging
import math
from typing import Sequence

from dlmm import PricePoint, InvalidPriceDataError, InvalidVolumeError

logger = logging.getLogger(__name__)


class PriceSeriesValidator:
    """
    Checks a price series before it reaches the simulator.

    A series that fails validation is rejected as a whole: a skipped day
    would silently corrupt every cumulative figure after it.
    """

    def validate(self, price_series: Sequence[PricePoint]) -> None:
        """
        Validate a full price series.

        Args:
            price_series: Ordered daily price points

        Raises:
            InvalidPriceDataError: Empty series, bad price or unordered dates
            InvalidVolumeError: Negative or non-finite volume
        """
        if not price_series:
            violation = "Price series is empty"
            logger.warning(violation)
            raise InvalidPriceDataError(violation)

        previous_timestamp = None
        for i, point in enumerate(price_series):
            self._validate_price(i, point)
            self._validate_volume(i, point)

            if previous_timestamp is not None and point.timestamp <= previous_timestamp:
                violation = (
                    f"Day {i}: timestamp {point.timestamp} is not after "
                    f"{previous_timestamp}"
                )
                logger.warning(violation)
                raise InvalidPriceDataError(violation)
            previous_timestamp = point.timestamp

    def _validate_price(self, index: int, point: PricePoint) -> None:
        if not math.isfinite(point.price) or point.price <= 0:
            violation = f"Day {index} ({point.timestamp}): invalid price {point.price}"
            logger.warning(violation)
            raise InvalidPriceDataError(violation)

    def _validate_volume(self, index: int, point: PricePoint) -> None:
        if not math.isfinite(point.volume) or point.volume < 0:
            violation = f"Day {index} ({point.timestamp}): invalid volume {point.volume}"
            logger.warning(violation)
            raise InvalidVolumeError(violation)
