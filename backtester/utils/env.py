import os
from typing import TypeVar, Type, Optional

from dotenv import load_dotenv

load_dotenv()

T = TypeVar("T")


def get_env_variable(name: str, type_: Type[T], default: Optional[T]) -> Optional[T]:
    """Type-safe wrapper for `os.getenv`.

    Args:
        name (str): Name of the environment variable.
        type_ (Type[T]): Type of the environment variable.
        default (T): Default value if the environment variable is not set.

    Returns:
        T: Value of the environment variable, or None when it is unset and
        the default is None.

    Usage:
        ```python
        from backtester.utils.env import get_env_variable

        # Get a float environment variable with a default value.
        get_env_variable("DAILY_FEE_RATE", float, 0.0025)

        # Get an optional string environment variable.
        get_env_variable("BIRDEYE_API_KEY", str, None)
        ```
    """

    value = os.getenv(name, default)
    if value is None:
        return None
    try:
        return type_.__call__(value)
    except ValueError:
        raise ValueError(
            f"Environment variable '{name}' is not of type '{type_.__name__}'."
        )


# Fee accrual model
DAILY_FEE_RATE = get_env_variable(
    name="DAILY_FEE_RATE",
    type_=float,
    default=0.0025,
)
POOL_SIZE_TO_VOLUME_RATIO = get_env_variable(
    name="POOL_SIZE_TO_VOLUME_RATIO",
    type_=float,
    default=0.1,
)
LIQUIDITY_SHARE_CAP = get_env_variable(
    name="LIQUIDITY_SHARE_CAP",
    type_=float,
    default=0.05,
)
GAS_COST_PER_REBALANCE = get_env_variable(
    name="GAS_COST_PER_REBALANCE",
    type_=float,
    default=0.01,
)
DEFAULT_REBALANCE_THRESHOLD = get_env_variable(
    name="DEFAULT_REBALANCE_THRESHOLD",
    type_=float,
    default=0.05,
)

# Price feeds
BIRDEYE_API_BASE = get_env_variable(
    name="BIRDEYE_API_BASE",
    type_=str,
    default="https://public-api.birdeye.so/defi",
)
BIRDEYE_API_KEY = get_env_variable(
    name="BIRDEYE_API_KEY",
    type_=str,
    default=None,
)
COINGECKO_API_BASE = get_env_variable(
    name="COINGECKO_API_BASE",
    type_=str,
    default="https://api.coingecko.com/api/v3",
)
HTTP_TIMEOUT = get_env_variable(
    name="HTTP_TIMEOUT",
    type_=int,
    default=15,
)

# Pool data
POOL_DATA_URL = get_env_variable(
    name="POOL_DATA_URL",
    type_=str,
    default=None,
)
SOL_REFERENCE_PRICE = get_env_variable(
    name="SOL_REFERENCE_PRICE",
    type_=float,
    default=150.0,
)
BTC_REFERENCE_PRICE = get_env_variable(
    name="BTC_REFERENCE_PRICE",
    type_=float,
    default=65000.0,
)
SAROS_REFERENCE_PRICE = get_env_variable(
    name="SAROS_REFERENCE_PRICE",
    type_=float,
    default=0.5,
)

LOG_LEVEL = get_env_variable(
    name="LOG_LEVEL",
    type_=str,
    default="INFO",
)
