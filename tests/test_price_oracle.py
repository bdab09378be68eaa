from __future__ import annotations

import pytest
import requests

from ingestion.market.price_oracle import (
    PYTH_FEED_IDS,
    CoinGeckoPriceOracle,
    PythPriceOracle,
    build_price_oracle,
)
from ingestion.rpc.errors import PriceUnavailableError
from ingestion.rpc.rate_limiter import RateGate, RateLimitedClient


class FakeResponse:
    def __init__(self, body=None, status_code=200):
        self._body = body
        self.status_code = status_code

    def json(self):
        return self._body

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")


class FakeGet:
    def __init__(self, *responses):
        self.responses = list(responses)
        self.calls = []

    def __call__(self, url, params=None, timeout=None):
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        return self.responses.pop(0)


def test_coingecko_spot_price():
    http_get = FakeGet(FakeResponse({"solana": {"usd": 142.37}}))
    oracle = CoinGeckoPriceOracle(http_get=http_get)

    assert oracle.get_spot_price("SOL", "USD") == pytest.approx(142.37)
    assert http_get.calls[0]["url"].endswith("/simple/price")
    assert http_get.calls[0]["params"] == {"ids": "solana", "vs_currencies": "usd"}


def test_coingecko_missing_price_is_unavailable():
    oracle = CoinGeckoPriceOracle(http_get=FakeGet(FakeResponse({})))

    with pytest.raises(PriceUnavailableError):
        oracle.get_spot_price("SOL", "USD")


def test_coingecko_http_error_is_unavailable():
    oracle = CoinGeckoPriceOracle(http_get=FakeGet(FakeResponse({}, status_code=500)))

    with pytest.raises(PriceUnavailableError):
        oracle.get_spot_price("SOL", "USD")


def test_unknown_symbol_is_unavailable():
    with pytest.raises(PriceUnavailableError):
        CoinGeckoPriceOracle(http_get=FakeGet()).get_spot_price("NOPE", "USD")


def test_rate_limited_price_is_retried_through_limiter():
    http_get = FakeGet(
        FakeResponse({}, status_code=429),
        FakeResponse({"solana": {"usd": 99.0}}),
    )
    limiter = RateLimitedClient(RateGate(0), sleep=lambda s: None)
    oracle = CoinGeckoPriceOracle(http_get=http_get, limiter=limiter)

    assert oracle.get_spot_price("SOL", "USD") == 99.0
    assert limiter.retries == 1


def test_pyth_spot_price_normalizes_exponent():
    feed = PYTH_FEED_IDS["SOL/USD"]
    body = {"parsed": [{"id": feed[2:], "price": {"price": "14237000000", "expo": -8, "conf": "1"}}]}
    oracle = PythPriceOracle(http_get=FakeGet(FakeResponse(body)))

    assert oracle.get_spot_price("SOL", "USD") == pytest.approx(142.37)


def test_pyth_missing_feed_is_unavailable():
    oracle = PythPriceOracle(http_get=FakeGet(FakeResponse({"parsed": []})))

    with pytest.raises(PriceUnavailableError):
        oracle.get_spot_price("SOL", "USD")


def test_build_price_oracle():
    assert isinstance(build_price_oracle("coingecko"), CoinGeckoPriceOracle)
    assert isinstance(build_price_oracle("pyth"), PythPriceOracle)
    with pytest.raises(ValueError):
        build_price_oracle("other")
