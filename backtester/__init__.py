"""
DLMM Strategy Backtester Package

Simulates concentrated, wide and actively rebalanced LP strategies over a
daily price series, optionally enriched with live pool data.
"""
from backtester.simulator import BacktestSimulator
from backtester.comparator import StrategyComparator
from backtester.services.backtester import BacktesterService

__all__ = [
    "BacktestSimulator",
    "StrategyComparator",
    "BacktesterService",
]
