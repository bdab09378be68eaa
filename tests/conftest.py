from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from ingestion.rpc.rate_limiter import RateGate, RateLimitedClient
from ingestion.sources.base import ChainDataProvider

NOW_MS = 1_700_000_000_000
PROGRAM = "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P"


class FakeProvider(ChainDataProvider):
    """In-memory chain: signatures newest-first, transactions and balances by key."""

    def __init__(
        self,
        signatures: Optional[List[Dict[str, Any]]] = None,
        transactions: Optional[Dict[str, Any]] = None,
        balances: Optional[Dict[str, int]] = None,
        tx_errors: Optional[Dict[str, Exception]] = None,
    ):
        self.signatures = signatures or []
        self.transactions = transactions or {}
        self.balances = balances or {}
        self.tx_errors = tx_errors or {}
        self.page_requests: List[Dict[str, Any]] = []
        self.tx_requests: List[str] = []
        self.balance_requests: List[str] = []

    def get_signatures_for_address(self, address, limit, before=None):
        self.page_requests.append({"address": address, "limit": limit, "before": before})
        start = 0
        if before is not None:
            ids = [s["signature"] for s in self.signatures]
            start = ids.index(before) + 1
        return [dict(s) for s in self.signatures[start:start + limit]]

    def get_transaction(self, signature, max_supported_version=0):
        self.tx_requests.append(signature)
        if signature in self.tx_errors:
            raise self.tx_errors[signature]
        return self.transactions.get(signature)

    def get_balance(self, address):
        self.balance_requests.append(address)
        return self.balances.get(address, 0)


class FakeOracle:
    def __init__(self, price: float = 150.0, error: Optional[Exception] = None):
        self.price = price
        self.error = error
        self.calls = 0

    def get_spot_price(self, base, quote):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.price


class CollectingReporter:
    def __init__(self):
        self.reports = []

    def publish(self, report):
        self.reports.append(report)


def token_balance(owner: Optional[str], raw_amount: Optional[int], index: int = 0) -> Dict[str, Any]:
    entry: Dict[str, Any] = {"accountIndex": index, "mint": "MintPump111"}
    if owner is not None:
        entry["owner"] = owner
    if raw_amount is not None:
        entry["uiTokenAmount"] = {"amount": str(raw_amount), "decimals": 6}
    return entry


def make_tx(token_changes=(), native_changes=(), block_time: int = 1_699_999_000) -> Dict[str, Any]:
    """token_changes: (owner, pre_raw, post_raw); native_changes: (pre_lamports, post_lamports)."""
    return {
        "blockTime": block_time,
        "meta": {
            "preBalances": [pre for pre, _ in native_changes],
            "postBalances": [post for _, post in native_changes],
            "preTokenBalances": [token_balance(o, pre, i) for i, (o, pre, _) in enumerate(token_changes)],
            "postTokenBalances": [token_balance(o, post, i) for i, (o, _, post) in enumerate(token_changes)],
        },
    }


def make_signatures(count: int, newest_ms: int = NOW_MS, step_ms: int = 60_000, prefix: str = "sig"):
    """`count` signatures, newest first, `step_ms` apart."""
    return [
        {"signature": f"{prefix}{i}", "blockTime": (newest_ms - i * step_ms) // 1000}
        for i in range(count)
    ]


@pytest.fixture
def no_sleep_client() -> RateLimitedClient:
    return RateLimitedClient(RateGate(0), sleep=lambda s: None)


@pytest.fixture
def collecting_reporter() -> CollectingReporter:
    return CollectingReporter()
