"""analysis/ranking.py

Survivorship filter + profit ranking over a trader ledger, and report-time
enrichment (live SOL balance, USD profit) of the selected wallets.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from typing import Callable, Dict, List

from analysis.trade_classifier import LAMPORTS_PER_SOL
from analysis.trader_ledger import TraderRecord
from ingestion.rpc.errors import ProviderUnavailableError, RateLimitedError

logger = logging.getLogger(__name__)

MIN_TRADES = 3
MIN_WIN_RATE = 0.5
TOP_K = 10


@dataclass(frozen=True)
class RankedTrader:
    address: str
    record: TraderRecord


def qualifies(
    record: TraderRecord,
    min_trades: int = MIN_TRADES,
    min_win_rate: float = MIN_WIN_RATE,
) -> tuple[bool, str]:
    """Apply survivorship filters to one record.

    Returns:
        Tuple of (passed: bool, reason: str)
    """
    if record.trades < min_trades:
        return False, f"Trades {record.trades} < {min_trades} threshold"
    if record.profit <= 0:
        return False, f"Profit {record.profit:.4f} SOL not positive"
    if record.successful_trades / record.trades <= min_win_rate:
        return False, f"Winrate {record.win_rate:.1%} <= {min_win_rate:.1%} threshold"
    return True, ""


def select_top_traders(
    ledger: Dict[str, TraderRecord],
    k: int = TOP_K,
    min_trades: int = MIN_TRADES,
    min_win_rate: float = MIN_WIN_RATE,
) -> List[RankedTrader]:
    """Qualifying wallets sorted by profit, highest first, at most `k`.

    Ties keep ledger insertion order (first wallet seen ranks first);
    sorted() is stable.
    """
    eligible = [
        RankedTrader(address, record)
        for address, record in ledger.items()
        if qualifies(record, min_trades, min_win_rate)[0]
    ]
    eligible = sorted(eligible, key=lambda t: t.record.profit, reverse=True)
    return eligible[:k]


def enrich_traders(
    traders: List[RankedTrader],
    balance_lookup: Callable[[str], int],
    price: float,
) -> List[RankedTrader]:
    """Attach SOL balance and USD profit to copies of the selected records.

    `balance_lookup` returns lamports and is expected to be rate-limited by
    the caller. A provider failure for one wallet is reported as balance 0.
    """
    enriched: List[RankedTrader] = []
    for trader in traders:
        try:
            sol_balance = balance_lookup(trader.address) / LAMPORTS_PER_SOL
        except (ProviderUnavailableError, RateLimitedError) as e:
            logger.warning(f"[ranking] Failed to fetch SOL balance for {trader.address}: {e}")
            sol_balance = 0.0
        record = replace(
            trader.record,
            sol_balance=sol_balance,
            usd_profit=trader.record.profit * price,
        )
        enriched.append(RankedTrader(trader.address, record))
    return enriched
