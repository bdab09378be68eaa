"""analysis/trade_classifier.py

Trade classification for raw getTransaction records.

Pure functions, no I/O:
- is_trade: does any index-aligned token balance pair change?
- trade_value: gross SOL moved, ignoring dust (fees, rent rounding)
- extract_trade_events: per-owner signed token deltas for the ledger
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, List, Optional, Tuple

LAMPORTS_PER_SOL = 1_000_000_000
DEFAULT_DUST_THRESHOLD_SOL = 0.001


@dataclass(frozen=True)
class TradeEvent:
    """One balance-change leg of a trade, attributed to a wallet."""
    wallet: str
    native_unit_delta: float   # signed, display units
    gross_trade_value: float   # SOL, >= 0
    timestamp: int             # unix seconds, 0 if unknown


def _meta(tx: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not isinstance(tx, dict):
        return None
    meta = tx.get("meta")
    return meta if isinstance(meta, dict) else None


def _raw_amount(balance: Dict[str, Any]) -> Optional[int]:
    ui = balance.get("uiTokenAmount")
    if not isinstance(ui, dict):
        return None
    try:
        return int(ui.get("amount"))
    except (TypeError, ValueError):
        return None


def token_balance_deltas(tx: Optional[Dict[str, Any]]) -> List[Tuple[str, int]]:
    """
    (owner, raw delta) for every index-aligned pre/post token balance pair
    where both entries exist, the pre entry has an owner, both carry a
    parsed amount, and the amount changed.
    """
    meta = _meta(tx)
    if meta is None:
        return []
    pre_balances = meta.get("preTokenBalances")
    post_balances = meta.get("postTokenBalances")
    if not pre_balances or not post_balances:
        return []

    deltas: List[Tuple[str, int]] = []
    for pre, post in zip(pre_balances, post_balances):
        if not pre or not post or not pre.get("owner"):
            continue
        pre_amount = _raw_amount(pre)
        post_amount = _raw_amount(post)
        if pre_amount is None or post_amount is None:
            continue
        change = post_amount - pre_amount
        if change != 0:
            deltas.append((pre["owner"], change))
    return deltas


def is_trade(tx: Optional[Dict[str, Any]]) -> bool:
    """True iff at least one token balance pair changed (sign and size are irrelevant)."""
    return bool(token_balance_deltas(tx))


def trade_value(
    tx: Optional[Dict[str, Any]],
    dust_threshold: float = DEFAULT_DUST_THRESHOLD_SOL,
) -> float:
    """Sum of |post - pre| SOL over native balance pairs above the dust threshold."""
    meta = _meta(tx)
    if meta is None:
        return 0.0
    pre_balances = meta.get("preBalances")
    post_balances = meta.get("postBalances")
    if not pre_balances or not post_balances:
        return 0.0

    total = 0.0
    for pre, post in zip(pre_balances, post_balances):
        if pre is None or post is None:
            continue
        change = abs(post - pre) / LAMPORTS_PER_SOL
        if change > dust_threshold:
            total += change
    return total


def extract_trade_events(
    tx: Optional[Dict[str, Any]], gross_value: float
) -> Iterator[TradeEvent]:
    """TradeEvents for every changed token balance pair of `tx`."""
    timestamp = int((tx or {}).get("blockTime") or 0)
    for owner, change in token_balance_deltas(tx):
        yield TradeEvent(
            wallet=owner,
            # Token amounts are scaled like lamports.
            native_unit_delta=change / LAMPORTS_PER_SOL,
            gross_trade_value=gross_value,
            timestamp=timestamp,
        )
