"""analysis/trader_ledger.py

Per-window trader ledger: folds classified transactions into cumulative
per-wallet statistics.

Invariants kept by apply():
- trades >= successful_trades >= 0
- total_volume >= 0
- a wallet has a record only after at least one balance-change leg
- average_trade_size == total_volume / trades after every update

No deduplication happens here; callers apply each transaction at most once.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional

from analysis.trade_classifier import TradeEvent, extract_trade_events


class VolumeAttribution(str, Enum):
    """How a transaction's gross trade value is credited to its participants."""
    PER_PARTICIPANT_FULL = "per_participant_full"  # every touched wallet gets the full value
    SPLIT_EVENLY = "split_evenly"
    SENDER_ONLY = "sender_only"                    # only legs with a negative delta


@dataclass
class TraderRecord:
    profit: float = 0.0
    trades: int = 0
    total_volume: float = 0.0
    successful_trades: int = 0
    average_trade_size: float = 0.0
    sol_balance: float = 0.0   # filled at report time only
    usd_profit: float = 0.0    # filled at report time only

    @property
    def win_rate(self) -> float:
        return self.successful_trades / self.trades if self.trades > 0 else 0.0

    def record(self, delta: float, volume: float) -> None:
        self.profit += delta
        self.trades += 1
        self.total_volume += volume
        if delta > 0:
            self.successful_trades += 1
        self.average_trade_size = self.total_volume / self.trades if self.trades > 0 else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "profit": self.profit,
            "trades": self.trades,
            "total_volume": self.total_volume,
            "successful_trades": self.successful_trades,
            "average_trade_size": self.average_trade_size,
            "sol_balance": self.sol_balance,
            "usd_profit": self.usd_profit,
            "win_rate": self.win_rate,
        }


Ledger = Dict[str, TraderRecord]


def _credited_volume(
    event: TradeEvent, legs: int, attribution: VolumeAttribution
) -> float:
    if attribution is VolumeAttribution.SPLIT_EVENLY:
        return event.gross_trade_value / legs
    if attribution is VolumeAttribution.SENDER_ONLY:
        return event.gross_trade_value if event.native_unit_delta < 0 else 0.0
    return event.gross_trade_value


def apply_events(
    ledger: Ledger,
    events: List[TradeEvent],
    attribution: VolumeAttribution = VolumeAttribution.PER_PARTICIPANT_FULL,
) -> int:
    """Fold events into the ledger. Returns the number of legs applied."""
    for event in events:
        trader = ledger.get(event.wallet)
        if trader is None:
            trader = ledger[event.wallet] = TraderRecord()
        trader.record(event.native_unit_delta, _credited_volume(event, len(events), attribution))
    return len(events)


def apply(
    ledger: Ledger,
    tx: Dict[str, Any],
    trade_value: float,
    attribution: VolumeAttribution = VolumeAttribution.PER_PARTICIPANT_FULL,
) -> int:
    """Apply one classified transaction to the ledger."""
    return apply_events(ledger, list(extract_trade_events(tx, trade_value)), attribution)


class LedgerAggregator:
    """Owns the ledger of one window and the attribution policy used to fill it."""

    def __init__(
        self,
        attribution: VolumeAttribution = VolumeAttribution.PER_PARTICIPANT_FULL,
        ledger: Optional[Ledger] = None,
    ):
        self.attribution = attribution
        self.ledger: Ledger = ledger if ledger is not None else {}

    def apply(self, tx: Dict[str, Any], trade_value: float) -> int:
        return apply(self.ledger, tx, trade_value, self.attribution)

    def __len__(self) -> int:
        return len(self.ledger)
