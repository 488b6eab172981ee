"""
Tests for the request surface.
"""
from unittest.mock import AsyncMock, Mock

import pytest

from dlmm import PricePoint
from backtester.api import get_price_data, run_backtest, run_comparison
from backtester.services.backtester import BacktesterService
from backtester.services.price_feed import StaticPriceFeed


@pytest.fixture
def price_feed():
    return StaticPriceFeed.sample()


@pytest.fixture
def service():
    return BacktesterService()


def broken_feed(error):
    feed = Mock()
    feed.get_price_series = AsyncMock(side_effect=error)
    return feed


class TestGetPriceData:
    @pytest.mark.asyncio
    async def test_success(self, price_feed):
        status, body = await get_price_data({"tokenPair": "SOL/USDC", "timePeriod": "7d"}, price_feed)
        assert status == 200
        assert body["success"] is True
        assert len(body["data"]) == 7
        assert body["data"][0] == {"timestamp": "2025-06-01", "price": 50.0, "volume": 2_000_000.0}

    @pytest.mark.asyncio
    async def test_missing_pair(self, price_feed):
        status, body = await get_price_data({"timePeriod": "7d"}, price_feed)
        assert status == 400
        assert body["success"] is False

    @pytest.mark.asyncio
    async def test_invalid_period(self, price_feed):
        status, _ = await get_price_data({"tokenPair": "SOL/USDC", "timePeriod": "2w"}, price_feed)
        assert status == 400

    @pytest.mark.asyncio
    async def test_no_data(self, price_feed):
        status, _ = await get_price_data({"tokenPair": "BONK/USDC"}, price_feed)
        assert status == 404

    @pytest.mark.asyncio
    async def test_feed_crash(self):
        status, body = await get_price_data({"tokenPair": "SOL/USDC"}, broken_feed(RuntimeError("boom")))
        assert status == 500
        assert "boom" not in body["error"]


class TestRunBacktest:
    @pytest.mark.asyncio
    async def test_success(self, price_feed, service):
        payload = {
            "tokenPair": "SOL/USDC",
            "timePeriod": "7d",
            "investmentAmount": 1000,
            "strategyKind": "concentrated",
            "initialRange": {"min_price": 49.0, "max_price": 52.0},
        }

        status, body = await run_backtest(payload, price_feed, service)

        assert status == 200
        data = body["data"]
        assert data["strategy_kind"] == "concentrated"
        assert data["range_auto_corrected"] is False
        assert len(data["daily_breakdown"]) == 7
        # Not-applicable fields are omitted
        assert "rebalance_count" not in data["summary"]

    @pytest.mark.asyncio
    async def test_active_summary(self, price_feed, service):
        payload = {
            "tokenPair": "SOL/USDC",
            "investmentAmount": 1000,
            "strategyKind": "active",
            "rebalanceThreshold": 0.02,
        }
        status, body = await run_backtest(payload, price_feed, service)
        assert status == 200
        assert body["data"]["summary"]["rebalance_count"] >= 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [
        {"tokenPair": "SOL/USDC", "strategyKind": "wide"},
        {"tokenPair": "SOL/USDC", "investmentAmount": -5, "strategyKind": "wide"},
        {"tokenPair": "SOL/USDC", "investmentAmount": 1000, "strategyKind": "yolo"},
        {"tokenPair": "SOL/USDC", "investmentAmount": 1000, "strategyKind": "active", "rebalanceThreshold": 0},
    ])
    async def test_invalid_parameters(self, price_feed, service, payload):
        status, body = await run_backtest(payload, price_feed, service)
        assert status == 400
        assert body["success"] is False

    @pytest.mark.asyncio
    async def test_strict_range_rejected(self, price_feed, service):
        payload = {
            "tokenPair": "SOL/USDC",
            "investmentAmount": 1000,
            "strategyKind": "concentrated",
            "initialRange": {"min_price": 60.0, "max_price": 70.0},
            "strictRange": True,
        }
        status, _ = await run_backtest(payload, price_feed, service)
        assert status == 400

    @pytest.mark.asyncio
    async def test_no_data(self, price_feed, service):
        payload = {"tokenPair": "BONK/USDC", "investmentAmount": 1000, "strategyKind": "wide"}
        status, _ = await run_backtest(payload, price_feed, service)
        assert status == 404

    @pytest.mark.asyncio
    async def test_invalid_feed_data(self, service):
        feed = StaticPriceFeed({"SOL/USDC": [PricePoint(timestamp="2025-06-01", price=0.0, volume=1.0)]})
        payload = {"tokenPair": "SOL/USDC", "investmentAmount": 1000, "strategyKind": "wide"}
        status, _ = await run_backtest(payload, feed, service)
        assert status == 500


class TestRunComparison:
    @pytest.mark.asyncio
    async def test_success(self, price_feed, service):
        payload = {"tokenPair": "SOL/USDC", "timePeriod": "30d", "investmentAmount": 1000}

        status, body = await run_comparison(payload, price_feed, service)

        assert status == 200
        entries = body["data"]["entries"]
        assert [entry["strategy_kind"] for entry in entries] == ["concentrated", "wide", "active"]
        assert body["best_strategy"] in {"concentrated", "wide", "active"}

    @pytest.mark.asyncio
    async def test_failed_strategies_are_reported(self, service):
        feed = StaticPriceFeed({"SOL/USDC": [PricePoint(timestamp="2025-06-01", price=-1.0, volume=1.0)]})
        payload = {"tokenPair": "SOL/USDC", "investmentAmount": 1000}

        status, body = await run_comparison(payload, feed, service)

        assert status == 200
        assert all("error" in entry for entry in body["data"]["entries"])
        assert body["best_strategy"] is None

    @pytest.mark.asyncio
    async def test_missing_investment(self, price_feed, service):
        status, _ = await run_comparison({"tokenPair": "SOL/USDC"}, price_feed, service)
        assert status == 400
