"""
Historical price/volume feeds.

Feeds are untrusted: they only fetch and reshape data, and the simulator
validates everything it receives. HTTP feeds use requests in a worker
thread so they can be awaited from async callers.
"""
import asyncio
import logging
import time
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

import requests

from dlmm import PricePoint
from backtester.utils.env import (
    BIRDEYE_API_BASE,
    BIRDEYE_API_KEY,
    COINGECKO_API_BASE,
    HTTP_TIMEOUT,
)

logger = logging.getLogger(__name__)


class LookbackPeriod(str, Enum):
    """Supported history lengths."""
    WEEK = "7d"
    MONTH = "30d"
    QUARTER = "90d"
    HALF_YEAR = "180d"
    YEAR = "1y"

    @property
    def days(self) -> int:
        return {
            "7d": 7,
            "30d": 30,
            "90d": 90,
            "180d": 180,
            "1y": 365,
        }[self.value]


class NoPriceDataError(Exception):
    """The feed has no usable data for the requested pair and period."""


# Solana token mints
TOKEN_MINTS = {
    "SOL": "So11111111111111111111111111111111111111112",
    "RAY": "4k3Dyjzvzp8eMZWUXbBCjEvwSkkk59S5iCNLY3QrkX6R",
    "USDC": "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v",
    "BONK": "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263",
    "JUP": "JUPyiwrYJFskUPiHa7hkeR8VUtAeFoSYbKedZNsDvCN",
}

COINGECKO_IDS = {
    "SOL": "solana",
    "RAY": "raydium",
    "USDC": "usd-coin",
    "BONK": "bonk",
    "JUP": "jupiter-exchange-solana",
}

# Candle sizes requested from Birdeye per lookback
BIRDEYE_INTERVALS = {
    LookbackPeriod.WEEK: "1H",
    LookbackPeriod.MONTH: "4H",
    LookbackPeriod.QUARTER: "1D",
    LookbackPeriod.HALF_YEAR: "1D",
    LookbackPeriod.YEAR: "1D",
}

SAMPLE_PRICE_SERIES: List[PricePoint] = [
    PricePoint(timestamp="2025-06-01", price=50.0, volume=2_000_000),
    PricePoint(timestamp="2025-06-02", price=51.5, volume=2_200_000),
    PricePoint(timestamp="2025-06-03", price=49.8, volume=1_800_000),
    PricePoint(timestamp="2025-06-04", price=52.1, volume=2_400_000),
    PricePoint(timestamp="2025-06-05", price=48.5, volume=1_600_000),
    PricePoint(timestamp="2025-06-06", price=50.8, volume=2_100_000),
    PricePoint(timestamp="2025-06-07", price=51.2, volume=2_300_000),
]


def split_token_pair(token_pair_id: str) -> Tuple[str, str]:
    """'SOL/USDC' -> ('SOL', 'USDC')"""
    parts = token_pair_id.upper().split("/")
    if len(parts) != 2 or not all(parts):
        raise ValueError(f"Invalid token pair: {token_pair_id}")
    return parts[0], parts[1]


def to_daily_points(samples: Iterable[Tuple[float, float, float]]) -> List[PricePoint]:
    """
    Collapse (unix_seconds, price, volume) samples into one point per UTC day.

    The last price of the day is kept and volumes are summed, so intraday
    candles do not produce duplicate dates.
    """
    days: Dict[str, List[float]] = {}
    for unix_time, price, volume in sorted(samples, key=lambda s: s[0]):
        date = datetime.fromtimestamp(unix_time, tz=timezone.utc).date().isoformat()
        if date in days:
            days[date][0] = price
            days[date][1] += volume
        else:
            days[date] = [price, volume]

    return [
        PricePoint(timestamp=date, price=price, volume=volume)
        for date, (price, volume) in days.items()
    ]


class PriceFeed(ABC):
    """
    Abstract base class for historical price sources.

    All methods are async so HTTP and in-memory feeds are interchangeable.
    """

    name: str = "feed"

    @abstractmethod
    async def get_price_series(
        self,
        token_pair_id: str,
        lookback: LookbackPeriod,
    ) -> List[PricePoint]:
        """Fetch daily price points for a pair, oldest first."""
        pass


class StaticPriceFeed(PriceFeed):
    """In-memory feed, used for offline runs and tests."""

    name = "static"

    def __init__(self, series: Optional[Dict[str, Sequence[PricePoint]]] = None):
        self.series = {pair.upper(): list(points) for pair, points in (series or {}).items()}

    @classmethod
    def sample(cls, token_pair_id: str = "SOL/USDC") -> 'StaticPriceFeed':
        return cls({token_pair_id: SAMPLE_PRICE_SERIES})

    async def get_price_series(
        self,
        token_pair_id: str,
        lookback: LookbackPeriod,
    ) -> List[PricePoint]:
        points = self.series.get(token_pair_id.upper())
        if not points:
            raise NoPriceDataError(f"No static data for {token_pair_id}")
        return points[-lookback.days:]


class HttpPriceFeed(PriceFeed):
    """Shared plumbing for JSON-over-HTTP feeds."""

    def __init__(self, base_url: str, timeout: int = HTTP_TIMEOUT, session: Optional[requests.Session] = None):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.session = session or requests.Session()

    async def _get_json(
        self,
        path: str,
        params: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        url = f"{self.base_url}{path}"
        response = await asyncio.to_thread(
            self.session.get, url, params=params, headers=headers, timeout=self.timeout
        )
        response.raise_for_status()
        return response.json()


class BirdeyePriceFeed(HttpPriceFeed):
    """Birdeye historical prices, keyed by Solana mint."""

    name = "birdeye"

    def __init__(self, api_key: Optional[str] = BIRDEYE_API_KEY, base_url: str = BIRDEYE_API_BASE, **kwargs):
        super().__init__(base_url, **kwargs)
        self.api_key = api_key

    async def get_price_series(
        self,
        token_pair_id: str,
        lookback: LookbackPeriod,
    ) -> List[PricePoint]:
        base, quote = split_token_pair(token_pair_id)
        base_mint = TOKEN_MINTS.get(base)
        quote_mint = TOKEN_MINTS.get(quote)
        if not base_mint or not quote_mint:
            raise NoPriceDataError(f"Token mint not found for {base}/{quote}")

        now = int(time.time())
        data = await self._get_json(
            "/history_price",
            params={
                "address": base_mint,
                "address_to": quote_mint,
                "type": BIRDEYE_INTERVALS[lookback],
                "time_from": now - lookback.days * 24 * 60 * 60,
                "time_to": now,
            },
            headers={"X-API-KEY": self.api_key or ""},
        )

        items = (data.get("data") or {}).get("items")
        if not data.get("success") or not items:
            raise NoPriceDataError("Invalid Birdeye response")

        # Birdeye omits volume on some candles; those days count as zero volume
        return to_daily_points(
            (item["unixTime"], float(item["value"]), float(item.get("volume") or 0.0))
            for item in items
        )


class CoinGeckoPriceFeed(HttpPriceFeed):
    """CoinGecko market chart, priced in the quote currency."""

    name = "coingecko"

    def __init__(self, base_url: str = COINGECKO_API_BASE, **kwargs):
        super().__init__(base_url, **kwargs)

    async def get_price_series(
        self,
        token_pair_id: str,
        lookback: LookbackPeriod,
    ) -> List[PricePoint]:
        base, quote = split_token_pair(token_pair_id)
        coin_id = COINGECKO_IDS.get(base)
        if not coin_id:
            raise NoPriceDataError(f"CoinGecko ID not found for {base}")

        data = await self._get_json(
            f"/coins/{coin_id}/market_chart",
            params={
                "vs_currency": quote.lower(),
                "days": lookback.days,
                "interval": "daily",
            },
        )

        prices = data.get("prices")
        if not isinstance(prices, list) or not prices:
            raise NoPriceDataError("Invalid CoinGecko response")

        volumes = data.get("total_volumes") or []
        samples = []
        for index, (timestamp_ms, price) in enumerate(prices):
            volume = volumes[index][1] if index < len(volumes) else 0.0
            samples.append((timestamp_ms / 1000, float(price), float(volume or 0.0)))
        return to_daily_points(samples)


class FallbackPriceFeed(PriceFeed):
    """Tries a list of feeds in order and returns the first non-empty series."""

    name = "fallback"

    def __init__(self, feeds: Sequence[PriceFeed]):
        self.feeds = list(feeds)

    @classmethod
    def default(cls) -> 'FallbackPriceFeed':
        return cls([BirdeyePriceFeed(), CoinGeckoPriceFeed()])

    async def get_price_series(
        self,
        token_pair_id: str,
        lookback: LookbackPeriod,
    ) -> List[PricePoint]:
        for feed in self.feeds:
            try:
                points = await feed.get_price_series(token_pair_id, lookback)
            except (
                NoPriceDataError,
                requests.RequestException,
                ValueError,
                KeyError,
                TypeError,
                AttributeError,
            ) as e:
                # Malformed payloads surface as lookup or type errors
                logger.warning(f"{feed.name} feed failed for {token_pair_id}: {e}")
                continue

            if points:
                logger.info(f"Fetched {len(points)} data points from {feed.name}")
                return points

        raise NoPriceDataError(
            f"No price data for {token_pair_id} over {lookback.value}"
        )
