"""
Tests for the historical price feeds.
"""
from unittest.mock import AsyncMock, Mock, patch

import pytest
import requests

from dlmm import PricePoint
from backtester.services.price_feed import (
    TOKEN_MINTS,
    BirdeyePriceFeed,
    CoinGeckoPriceFeed,
    FallbackPriceFeed,
    LookbackPeriod,
    NoPriceDataError,
    StaticPriceFeed,
    split_token_pair,
    to_daily_points,
)

# 2025-06-01T00:00:00Z
JUNE_FIRST = 1748736000
DAY = 24 * 60 * 60


def mock_session(payload):
    """requests.Session whose GET returns payload as JSON."""
    response = Mock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    session = Mock()
    session.get.return_value = response
    return session


def test_split_token_pair():
    assert split_token_pair("sol/usdc") == ("SOL", "USDC")
    with pytest.raises(ValueError):
        split_token_pair("SOLUSDC")
    with pytest.raises(ValueError):
        split_token_pair("SOL/")


def test_lookback_days():
    assert LookbackPeriod("7d").days == 7
    assert LookbackPeriod.YEAR.days == 365


def test_to_daily_points_collapses_intraday_samples():
    samples = [
        (JUNE_FIRST + DAY, 12.0, 3.0),
        (JUNE_FIRST, 10.0, 1.0),
        (JUNE_FIRST + 3600, 11.0, 2.0),
    ]

    points = to_daily_points(samples)

    assert points == [
        PricePoint(timestamp="2025-06-01", price=11.0, volume=3.0),
        PricePoint(timestamp="2025-06-02", price=12.0, volume=3.0),
    ]


class TestStaticPriceFeed:
    @pytest.mark.asyncio
    async def test_sample_series(self):
        feed = StaticPriceFeed.sample()
        points = await feed.get_price_series("sol/usdc", LookbackPeriod.MONTH)
        assert len(points) == 7
        assert points[0].price == 50.0

    @pytest.mark.asyncio
    async def test_lookback_trims_series(self):
        series = [
            PricePoint(timestamp=f"2025-06-{day:02d}", price=100.0, volume=1.0)
            for day in range(1, 11)
        ]
        feed = StaticPriceFeed({"SOL/USDC": series})
        points = await feed.get_price_series("SOL/USDC", LookbackPeriod.WEEK)
        assert [point.timestamp for point in points] == [f"2025-06-{day:02d}" for day in range(4, 11)]

    @pytest.mark.asyncio
    async def test_unknown_pair(self):
        with pytest.raises(NoPriceDataError):
            await StaticPriceFeed.sample().get_price_series("BONK/USDC", LookbackPeriod.WEEK)


class TestBirdeyePriceFeed:
    @pytest.mark.asyncio
    async def test_fetches_history(self):
        session = mock_session({
            "success": True,
            "data": {"items": [
                {"unixTime": JUNE_FIRST, "value": 150.0, "volume": 10.0},
                {"unixTime": JUNE_FIRST + DAY, "value": 155.0},
            ]},
        })
        feed = BirdeyePriceFeed(api_key="key", base_url="https://birdeye.test", session=session)

        with patch("backtester.services.price_feed.time.time", return_value=JUNE_FIRST + 90 * DAY):
            points = await feed.get_price_series("SOL/USDC", LookbackPeriod.QUARTER)

        assert [point.price for point in points] == [150.0, 155.0]
        assert points[1].volume == 0.0

        args, kwargs = session.get.call_args
        assert args[0] == "https://birdeye.test/history_price"
        assert kwargs["params"]["address"] == TOKEN_MINTS["SOL"]
        assert kwargs["params"]["address_to"] == TOKEN_MINTS["USDC"]
        assert kwargs["params"]["type"] == "1D"
        assert kwargs["params"]["time_from"] == JUNE_FIRST
        assert kwargs["params"]["time_to"] == JUNE_FIRST + 90 * DAY
        assert kwargs["headers"] == {"X-API-KEY": "key"}

    @pytest.mark.asyncio
    async def test_unknown_mint(self):
        feed = BirdeyePriceFeed(session=mock_session({}))
        with pytest.raises(NoPriceDataError):
            await feed.get_price_series("FOO/USDC", LookbackPeriod.WEEK)

    @pytest.mark.asyncio
    async def test_unsuccessful_response(self):
        feed = BirdeyePriceFeed(session=mock_session({"success": False, "data": {}}))
        with pytest.raises(NoPriceDataError):
            await feed.get_price_series("SOL/USDC", LookbackPeriod.WEEK)


class TestCoinGeckoPriceFeed:
    @pytest.mark.asyncio
    async def test_fetches_market_chart(self):
        session = mock_session({
            "prices": [[JUNE_FIRST * 1000, 150.0], [(JUNE_FIRST + DAY) * 1000, 152.0]],
            "total_volumes": [[JUNE_FIRST * 1000, 1e9], [(JUNE_FIRST + DAY) * 1000, 2e9]],
        })
        feed = CoinGeckoPriceFeed(base_url="https://coingecko.test", session=session)

        points = await feed.get_price_series("SOL/USDC", LookbackPeriod.MONTH)

        assert points == [
            PricePoint(timestamp="2025-06-01", price=150.0, volume=1e9),
            PricePoint(timestamp="2025-06-02", price=152.0, volume=2e9),
        ]
        args, kwargs = session.get.call_args
        assert args[0] == "https://coingecko.test/coins/solana/market_chart"
        assert kwargs["params"] == {"vs_currency": "usdc", "days": 30, "interval": "daily"}

    @pytest.mark.asyncio
    async def test_empty_prices(self):
        feed = CoinGeckoPriceFeed(session=mock_session({"prices": []}))
        with pytest.raises(NoPriceDataError):
            await feed.get_price_series("SOL/USDC", LookbackPeriod.MONTH)


class TestFallbackPriceFeed:
    @pytest.mark.asyncio
    async def test_uses_first_feed_with_data(self):
        broken = Mock()
        broken.name = "broken"
        broken.get_price_series = AsyncMock(side_effect=requests.ConnectionError("down"))

        feed = FallbackPriceFeed([broken, StaticPriceFeed({}), StaticPriceFeed.sample()])
        points = await feed.get_price_series("SOL/USDC", LookbackPeriod.WEEK)

        assert len(points) == 7
        broken.get_price_series.assert_awaited_once()

    @pytest.mark.parametrize("payload", [
        {"success": True, "data": ["oops"]},
        {"success": True, "data": {"items": [{"unixTime": JUNE_FIRST}]}},
        {"success": True, "data": {"items": "oops"}},
    ])
    @pytest.mark.asyncio
    async def test_malformed_payload_falls_through(self, payload):
        birdeye = BirdeyePriceFeed(api_key="key", session=mock_session(payload))

        feed = FallbackPriceFeed([birdeye, StaticPriceFeed.sample()])
        points = await feed.get_price_series("SOL/USDC", LookbackPeriod.WEEK)

        assert len(points) == 7
        assert points[0].price == 50.0

    @pytest.mark.asyncio
    async def test_all_feeds_fail(self):
        feed = FallbackPriceFeed([StaticPriceFeed({}), StaticPriceFeed.sample("BONK/USDC")])
        with pytest.raises(NoPriceDataError):
            await feed.get_price_series("SOL/USDC", LookbackPeriod.WEEK)
