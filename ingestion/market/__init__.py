"""
ingestion/market package

Spot price providers (CoinGecko, Pyth).
"""
from .price_oracle import (
    PriceOracle,
    CoinGeckoPriceOracle,
    PythPriceOracle,
    build_price_oracle,
)

__all__ = [
    'PriceOracle',
    'CoinGeckoPriceOracle',
    'PythPriceOracle',
    'build_price_oracle',
]
