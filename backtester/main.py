"""
Main entry point for the DLMM strategy backtester.
"""
import sys
import json
import asyncio
import logging
import argparse

from dlmm import PriceRange, StrategyKind
from backtester.api import run_backtest, run_comparison
from backtester.services.backtester import BacktesterService
from backtester.services.pool_feed import HttpPoolDataSource
from backtester.services.price_feed import FallbackPriceFeed, LookbackPeriod, StaticPriceFeed
from backtester.utils.env import LOG_LEVEL, POOL_DATA_URL

# Configure logging
logging.basicConfig(
    level=getattr(logging, LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler('backtester.log'),
        logging.StreamHandler(sys.stdout)
    ]
)
logger = logging.getLogger(__name__)


def get_config(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description='DLMM LP Strategy Backtester')

    parser.add_argument('--pair', type=str, default='SOL/USDC', help='Token pair, e.g. SOL/USDC')
    parser.add_argument(
        '--period', type=str, default=LookbackPeriod.MONTH.value,
        choices=[period.value for period in LookbackPeriod], help='History length'
    )
    parser.add_argument('--investment', type=float, default=1000.0, help='Capital deployed, in USD')
    parser.add_argument(
        '--strategy', type=str, default=StrategyKind.CONCENTRATED.value,
        choices=[kind.value for kind in StrategyKind], help='Strategy to simulate'
    )
    parser.add_argument('--range-min', type=float, help='Lower bound of the concentrated band')
    parser.add_argument('--range-max', type=float, help='Upper bound of the concentrated band')
    parser.add_argument('--threshold', type=float, help='Rebalance threshold (e.g. 0.05 for 5%%)')
    parser.add_argument('--strict-range', action='store_true', help='Fail instead of auto-correcting the band')
    parser.add_argument('--compare', action='store_true', help='Compare every strategy kind')
    parser.add_argument('--sample', action='store_true', help='Use the bundled sample series (offline)')

    args = parser.parse_args(argv)

    if (args.range_min is None) != (args.range_max is None):
        parser.error("--range-min and --range-max must be given together")

    return args


def build_payload(args) -> dict:
    payload = {
        'tokenPair': args.pair,
        'timePeriod': args.period,
        'investmentAmount': args.investment,
    }
    if args.range_min is not None:
        payload['initialRange'] = PriceRange(
            min_price=args.range_min, max_price=args.range_max
        ).model_dump()
    if args.threshold is not None:
        payload['rebalanceThreshold'] = args.threshold
    if not args.compare:
        payload['strategyKind'] = args.strategy
        payload['strictRange'] = args.strict_range
    return payload


async def run(args) -> int:
    if args.sample:
        price_feed = StaticPriceFeed.sample(args.pair)
        service = BacktesterService()
    else:
        price_feed = FallbackPriceFeed.default()
        service = BacktesterService(pool_source=HttpPoolDataSource() if POOL_DATA_URL else None)

    payload = build_payload(args)
    if args.compare:
        status, body = await run_comparison(payload, price_feed=price_feed, service=service)
    else:
        status, body = await run_backtest(payload, price_feed=price_feed, service=service)

    print(json.dumps(body, indent=2))
    return 0 if status == 200 else 1


def main():
    """Run a backtest or a comparison and print the JSON result."""
    logger.info("Starting DLMM Strategy Backtester")

    args = get_config()
    exit_code = asyncio.run(run(args))

    logger.info("Backtester finished")
    sys.exit(exit_code)


if __name__ == '__main__':
    main()
