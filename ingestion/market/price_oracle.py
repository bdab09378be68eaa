"""
ingestion/market/price_oracle.py

Spot price oracles used to convert SOL profit into USD.

Two providers:
- CoinGecko simple price API (default)
- Pyth Network Hermes API
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

import requests

from ingestion.rpc.errors import PriceUnavailableError, RateLimitedError
from ingestion.rpc.rate_limiter import RateLimitedClient

logger = logging.getLogger(__name__)


COINGECKO_BASE_URL = "https://api.coingecko.com/api/v3"
COINGECKO_IDS: Dict[str, str] = {
    "SOL": "solana",
    "BTC": "bitcoin",
    "ETH": "ethereum",
    "USDC": "usd-coin",
}

HERMES_BASE_URL = "https://hermes.pyth.network"
HERMES_V2_ENDPOINT = "/v2/updates/price/latest"
PYTH_FEED_IDS: Dict[str, str] = {
    "SOL/USD": "0xef0d8b6fda2ceba41da15d4095d1da392a0d2f8ed0c6c7bc0f4cfac8c280b56d",
    "BTC/USD": "0xe62df6c8b4a85fe1a67db44dc12de5db330f7ac66b72dc658afedf0f4a415b43",
    "ETH/USD": "0xff61491a931112ddf1bd8147cd1b641375f79f5825126d665480874634fd0ace",
    "USDC/USD": "0xeaa020c61cc479712813461ce153894a96a6c00b21ed0cfc2798d1f9a9e9c94a",
}

DEFAULT_TIMEOUT = 10.0  # seconds


class PriceOracle(ABC):
    @abstractmethod
    def get_spot_price(self, base: str, quote: str) -> float:
        """Return the spot price of `base` in `quote`; raise PriceUnavailableError on failure."""


class _HttpPriceOracle(PriceOracle):
    """Shared HTTP plumbing: optional rate limiting and injectable transport."""

    def __init__(
        self,
        limiter: Optional[RateLimitedClient] = None,
        timeout: float = DEFAULT_TIMEOUT,
        http_get: Optional[Callable[..., Any]] = None,
    ):
        self._limiter = limiter
        self._timeout = timeout
        self._http_get = http_get or requests.get

    def _get_json(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        def fetch() -> Dict[str, Any]:
            response = self._http_get(url, params=params, timeout=self._timeout)
            if response.status_code == 429:
                raise RateLimitedError(f"price request rate limited: {url}")
            response.raise_for_status()
            return response.json()

        if self._limiter is not None:
            return self._limiter.call(fetch)
        return fetch()


class CoinGeckoPriceOracle(_HttpPriceOracle):
    """Spot price from CoinGecko `simple/price`."""

    def __init__(self, base_url: str = COINGECKO_BASE_URL, **kwargs):
        super().__init__(**kwargs)
        self._base_url = base_url

    def get_spot_price(self, base: str, quote: str) -> float:
        coin_id = COINGECKO_IDS.get(base.upper())
        if coin_id is None:
            raise PriceUnavailableError(f"No CoinGecko id for {base}")
        vs = quote.lower()

        try:
            data = self._get_json(
                f"{self._base_url}/simple/price",
                {"ids": coin_id, "vs_currencies": vs},
            )
        except (requests.RequestException, RateLimitedError, ValueError) as e:
            logger.warning(f"[price] Failed to fetch {base}/{quote} from CoinGecko: {e}")
            raise PriceUnavailableError(f"CoinGecko request failed for {base}/{quote}: {e}") from e

        price = (data.get(coin_id) or {}).get(vs)
        return _require_positive(price, base, quote)


class PythPriceOracle(_HttpPriceOracle):
    """
    Spot price from Pyth Hermes.

    Response format:
    {"parsed": [{"id": "<feed>", "price": {"price": "123456789", "expo": -8, "conf": "1234"}}]}
    """

    def __init__(self, base_url: str = HERMES_BASE_URL, **kwargs):
        super().__init__(**kwargs)
        self._base_url = base_url

    def get_spot_price(self, base: str, quote: str) -> float:
        symbol = f"{base.upper()}/{quote.upper()}"
        feed_id = PYTH_FEED_IDS.get(symbol)
        if feed_id is None:
            raise PriceUnavailableError(f"No Pyth feed for {symbol}")

        try:
            data = self._get_json(f"{self._base_url}{HERMES_V2_ENDPOINT}", {"ids[]": feed_id})
        except (requests.RequestException, RateLimitedError, ValueError) as e:
            logger.warning(f"[price] Failed to fetch {symbol} from Pyth: {e}")
            raise PriceUnavailableError(f"Pyth request failed for {symbol}: {e}") from e

        for entry in data.get("parsed") or []:
            if _strip_0x(entry.get("id", "")) != _strip_0x(feed_id):
                continue
            price_info = entry.get("price") or {}
            try:
                # Normalize price: price * 10^expo
                price = int(price_info.get("price", 0)) * (10 ** int(price_info.get("expo", 0)))
            except (TypeError, ValueError):
                break
            return _require_positive(price, base, quote)

        raise PriceUnavailableError(f"No price data for {symbol} in Pyth response")


def _strip_0x(feed_id: str) -> str:
    return feed_id[2:] if feed_id.startswith("0x") else feed_id


def _require_positive(price: Any, base: str, quote: str) -> float:
    try:
        value = float(price)
    except (TypeError, ValueError):
        raise PriceUnavailableError(f"Missing {base}/{quote} price in response")
    if value <= 0:
        raise PriceUnavailableError(f"Non-positive {base}/{quote} price: {value}")
    return value


def build_price_oracle(provider: str, **kwargs) -> PriceOracle:
    """Create the oracle named in config (`coingecko` | `pyth`)."""
    if provider == "coingecko":
        return CoinGeckoPriceOracle(**kwargs)
    if provider == "pyth":
        return PythPriceOracle(**kwargs)
    raise ValueError(f"Unknown price provider: {provider}")
