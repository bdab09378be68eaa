"""
ingestion/rpc package

Solana JSON-RPC access behind a shared rate gate.
"""
from .client import SolanaRpcClient, DEFAULT_RPC_URL, HELIUS_RPC_URL
from .errors import (
    TrackerError,
    RateLimitedError,
    ProviderUnavailableError,
    MalformedTransactionError,
    PriceUnavailableError,
    is_rate_limited,
)
from .rate_limiter import RateGate, RateLimitedClient

__all__ = [
    'SolanaRpcClient',
    'DEFAULT_RPC_URL',
    'HELIUS_RPC_URL',
    'TrackerError',
    'RateLimitedError',
    'ProviderUnavailableError',
    'MalformedTransactionError',
    'PriceUnavailableError',
    'is_rate_limited',
    'RateGate',
    'RateLimitedClient',
]
