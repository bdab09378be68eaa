from __future__ import annotations

import pytest

from analysis.ranking import enrich_traders, qualifies, select_top_traders
from analysis.trade_classifier import LAMPORTS_PER_SOL
from analysis.trader_ledger import TraderRecord
from ingestion.rpc.errors import ProviderUnavailableError


def _rec(profit, trades, wins, volume=1.0):
    return TraderRecord(
        profit=profit,
        trades=trades,
        total_volume=volume,
        successful_trades=wins,
        average_trade_size=volume / trades if trades else 0.0,
    )


def test_win_rate_must_exceed_half():
    ledger = {
        "winner": _rec(10, 4, 3),
        "coinflip": _rec(10, 4, 2),
    }

    top = select_top_traders(ledger)

    assert [t.address for t in top] == ["winner"]
    assert qualifies(ledger["coinflip"])[0] is False


def test_min_trades_and_positive_profit_required():
    ledger = {
        "few_trades": _rec(50, 2, 2),
        "loser": _rec(-1, 5, 4),
        "flat": _rec(0, 5, 4),
        "ok": _rec(1, 3, 2),
    }

    assert [t.address for t in select_top_traders(ledger)] == ["ok"]


def test_sorted_by_profit_desc_and_capped():
    ledger = {f"w{i}": _rec(float(i), 5, 4) for i in range(1, 16)}

    top = select_top_traders(ledger, k=10)

    assert len(top) == 10
    profits = [t.record.profit for t in top]
    assert profits == sorted(profits, reverse=True)
    assert top[0].address == "w15"


def test_ties_keep_first_seen_order():
    ledger = {"first": _rec(5, 3, 3), "second": _rec(5, 3, 3), "top": _rec(9, 3, 3)}

    assert [t.address for t in select_top_traders(ledger)] == ["top", "first", "second"]


def test_output_only_contains_qualifying_records():
    ledger = {
        f"w{i}": _rec(profit=(i % 5) - 1.0, trades=(i % 4) + 1, wins=(i % 3))
        for i in range(40)
    }

    for trader in select_top_traders(ledger):
        r = trader.record
        assert r.trades >= 3 and r.profit > 0 and r.successful_trades / r.trades > 0.5


def test_enrich_sets_balance_and_usd_without_touching_ledger():
    ledger = {"w1": _rec(2.0, 3, 3)}
    top = select_top_traders(ledger)

    enriched = enrich_traders(top, lambda addr: 3 * LAMPORTS_PER_SOL, price=150.0)

    assert enriched[0].record.sol_balance == pytest.approx(3.0)
    assert enriched[0].record.usd_profit == pytest.approx(300.0)
    assert ledger["w1"].sol_balance == 0.0
    assert ledger["w1"].usd_profit == 0.0


def test_enrich_failed_balance_lookup_reports_zero():
    def lookup(addr):
        raise ProviderUnavailableError("timeout")

    enriched = enrich_traders(select_top_traders({"w1": _rec(2.0, 3, 3)}), lookup, price=10.0)

    assert enriched[0].record.sol_balance == 0.0
    assert enriched[0].record.usd_profit == pytest.approx(20.0)
