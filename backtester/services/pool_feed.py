"""
Live pool data sources.

Pool data is an optional enrichment: it lets a run use observed pool
liquidity and fee rate instead of the assumed constants. Callers must
treat any PoolDataError as "no enrichment available".
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests

from backtester.models import PoolSnapshot
from backtester.services.price_feed import split_token_pair
from backtester.utils.env import (
    POOL_DATA_URL,
    HTTP_TIMEOUT,
    SOL_REFERENCE_PRICE,
    BTC_REFERENCE_PRICE,
    SAROS_REFERENCE_PRICE,
)

logger = logging.getLogger(__name__)

# Known DLMM pools per token pair
KNOWN_POOLS: Dict[str, str] = {
    "SOL/USDC": "8vZHTVMdYvcPFUoHBEbcFyfSKnjWtvbNgYpXg1aiC2uS",
    "UNIBTC/XBTC": "7hc6hXjDPcFnhGBPBGTKUtViFsQuyWw8ph4ePHF1aTYG",
    "USDS/USDC": "DHXKB9fSff4LjubMFieKxaBrvNY6AzXVwaRLk5N2vs87",
    "USDC/USDT": "9P3N4QxjMumpTNNdvaNNskXu2t7VHMMXtePQB72kkSAk",
    "DZSOL/SOL": "9TxcJsmNPaZz6grcLgQxQ9FChAJxztCL54oj6rekwsdD",
    "MSTRR/USD1": "BJBShFvoKhUyb4k45Gep1ciQjZYPy3HpMmzxgpxx1bfK",
    "USD1/USDC": "8yrUdy1XufCuupHgbpptcer1npNkQDVh95sLnc67CfR2",
    "LAUNCHCOIN/USDC": "Cy75bt7SkreqcEE481HsKChWJPM7kkS3svVWKRPpS9UK",
}

# Used when the pool payload carries no decimals
FALLBACK_DECIMALS: Dict[str, int] = {
    "SOL": 9,
    "USDC": 6,
    "USDT": 6,
    "USDS": 6,
    "SAROS": 6,
    "BONK": 5,
    "WIF": 6,
    "UNIBTC": 8,
    "XBTC": 8,
    "DZSOL": 9,
    "MSTRR": 6,
    "USD1": 6,
}

STABLECOINS = ("USDC", "USDT", "USDS", "USD1")

# Price assumed for tokens without a reference price
UNKNOWN_TOKEN_PRICE = 0.01

# base_factor is expressed in millionths
FEE_RATE_DENOMINATOR = 1_000_000


class PoolDataError(Exception):
    """Pool data could not be fetched or parsed."""


def estimate_liquidity_usd(
    base_ticker: str,
    quote_ticker: str,
    base_amount: float,
    quote_amount: float,
) -> float:
    """
    Rough USD value of a pool from its reserves.

    The stable side (or a reference-priced side) is doubled to approximate
    both sides of the pool.
    """
    if quote_ticker in STABLECOINS:
        return quote_amount * 2
    if base_ticker in STABLECOINS:
        return base_amount * 2

    if base_ticker == "SOL":
        return base_amount * SOL_REFERENCE_PRICE * 2
    if quote_ticker == "SOL":
        return quote_amount * SOL_REFERENCE_PRICE * 2

    if "BTC" in base_ticker:
        return base_amount * BTC_REFERENCE_PRICE * 2
    if "BTC" in quote_ticker:
        return quote_amount * BTC_REFERENCE_PRICE * 2

    if base_ticker == "SAROS":
        return base_amount * SAROS_REFERENCE_PRICE * 2
    if quote_ticker == "SAROS":
        return quote_amount * SAROS_REFERENCE_PRICE * 2

    return max(base_amount, quote_amount) * UNKNOWN_TOKEN_PRICE * 2


def snapshot_from_payload(token_pair_id: str, pool_address: str, payload: Dict[str, Any]) -> PoolSnapshot:
    """
    Build a PoolSnapshot from a raw pool payload.

    Expected payload keys: base_reserve and quote_reserve (raw integer
    amounts), base_decimals and quote_decimals (optional), base_factor,
    bin_step, active_id.
    """
    base_ticker, quote_ticker = split_token_pair(token_pair_id)

    base_decimals = payload.get("base_decimals")
    if base_decimals is None:
        base_decimals = FALLBACK_DECIMALS.get(base_ticker, 6)
    quote_decimals = payload.get("quote_decimals")
    if quote_decimals is None:
        quote_decimals = FALLBACK_DECIMALS.get(quote_ticker, 6)

    try:
        base_reserve = float(payload.get("base_reserve") or 0) / 10 ** int(base_decimals)
        quote_reserve = float(payload.get("quote_reserve") or 0) / 10 ** int(quote_decimals)
        base_factor = float(payload.get("base_factor") or 0)
    except (TypeError, ValueError) as e:
        raise PoolDataError(f"Malformed pool payload for {token_pair_id}: {e}")

    return PoolSnapshot(
        pool_address=pool_address,
        total_liquidity=estimate_liquidity_usd(base_ticker, quote_ticker, base_reserve, quote_reserve),
        base_reserve=base_reserve,
        quote_reserve=quote_reserve,
        base_decimals=int(base_decimals),
        quote_decimals=int(quote_decimals),
        fee_rate=base_factor / FEE_RATE_DENOMINATOR,
        bin_step=payload.get("bin_step"),
        active_id=payload.get("active_id"),
    )


class PoolDataSource(ABC):
    """
    Abstract base class for live pool data.

    This allows the backtester service to work with different pool
    sources (HTTP endpoint, in-memory fixtures) without being coupled to a
    specific chain client.
    """

    @abstractmethod
    async def get_pool_snapshot(self, token_pair_id: str) -> PoolSnapshot:
        """Fetch the current state of the pool of a token pair."""
        pass


class StaticPoolDataSource(PoolDataSource):
    """In-memory pool snapshots."""

    def __init__(self, snapshots: Optional[Dict[str, PoolSnapshot]] = None):
        self.snapshots = {pair.upper(): snap for pair, snap in (snapshots or {}).items()}

    async def get_pool_snapshot(self, token_pair_id: str) -> PoolSnapshot:
        snapshot = self.snapshots.get(token_pair_id.upper())
        if snapshot is None:
            raise PoolDataError(f"No pool snapshot for {token_pair_id}")
        return snapshot


class HttpPoolDataSource(PoolDataSource):
    """
    Pool data served as JSON by a pool indexer at
    {base_url}/pools/{pool_address}.
    """

    def __init__(
        self,
        base_url: Optional[str] = POOL_DATA_URL,
        pools: Optional[Dict[str, str]] = None,
        timeout: int = HTTP_TIMEOUT,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.pools = {pair.upper(): addr for pair, addr in (pools or KNOWN_POOLS).items()}
        self.timeout = timeout
        self.session = session or requests.Session()

    async def get_pool_snapshot(self, token_pair_id: str) -> PoolSnapshot:
        if not self.base_url:
            raise PoolDataError("No pool data URL configured")

        pool_address = self.pools.get(token_pair_id.upper())
        if not pool_address:
            raise PoolDataError(f"Pool configuration not found for {token_pair_id}")

        try:
            response = await asyncio.to_thread(
                self.session.get,
                f"{self.base_url}/pools/{pool_address}",
                timeout=self.timeout,
            )
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as e:
            raise PoolDataError(f"Failed to fetch pool {pool_address}: {e}")

        snapshot = snapshot_from_payload(token_pair_id, pool_address, payload)
        logger.info(
            f"Pool {pool_address}: liquidity=${snapshot.total_liquidity:,.2f}, "
            f"fee rate={snapshot.fee_rate:.4%}"
        )
        return snapshot
