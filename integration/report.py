#!/usr/bin/env python3
"""integration/report.py

Presentation boundary for window results.

- WindowReport: structured result handed over per snapshot/window
- TableReporter: fixed-width text table
- JsonlReporter: one JSON object per report
- StatusLine: overwritable progress line (\r) for long loops
"""

from __future__ import annotations

import json
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, TextIO

from analysis.ranking import RankedTrader

TABLE_RULE = "-" * 104


@dataclass
class WindowReport:
    period_label: str
    price: float
    traders: List[RankedTrader] = field(default_factory=list)
    signatures_seen: int = 0
    transactions_processed: int = 0
    final: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period_label,
            "final": self.final,
            "price_usd": self.price,
            "signatures_seen": self.signatures_seen,
            "transactions_processed": self.transactions_processed,
            "traders": [
                {"address": t.address, **t.record.to_dict()} for t in self.traders
            ],
        }


class ReportSink(ABC):
    @abstractmethod
    def publish(self, report: WindowReport) -> None:
        """Render or store one report."""


def format_duration(ms: float) -> str:
    """Human-readable elapsed time: `1h 5m`, `3m 10s`, `42s`."""
    seconds = int(ms // 1000)
    minutes = seconds // 60
    hours = minutes // 60
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    if minutes > 0:
        return f"{minutes}m {seconds % 60}s"
    return f"{seconds}s"


def _fmt(num: float, decimals: int = 4) -> str:
    return f"{num:,.{decimals}f}"


class TableReporter(ReportSink):
    def __init__(self, stream: Optional[TextIO] = None, title: str = "Pump.fun Traders"):
        self.stream = stream or sys.stdout
        self.title = title

    def render(self, report: WindowReport) -> str:
        heading = "Final results" if report.final else "Intermediate results"
        lines = [
            "",
            f"{heading} - Top {len(report.traders)} Most Profitable {self.title} ({report.period_label}):",
            TABLE_RULE,
            "Wallet Address                               | Profit (SOL) | Balance (SOL) | "
            "Profit (USD) | Trades | Win Rate | Avg Trade Size",
            TABLE_RULE,
        ]
        for trader in report.traders:
            data = trader.record
            win_rate = f"{data.win_rate * 100:.1f}"
            lines.append(
                f"{trader.address:<44} | "
                f"{_fmt(data.profit)} SOL | "
                f"{_fmt(data.sol_balance)} SOL | "
                f"${_fmt(data.usd_profit, 2)} | "
                f"{data.trades:>3} | "
                f"{win_rate:>5}% | "
                f"{_fmt(data.average_trade_size)} SOL"
            )
        lines.append(TABLE_RULE)
        lines.append(
            f"signatures={report.signatures_seen} processed={report.transactions_processed} "
            f"price=${_fmt(report.price, 2)}"
        )
        return "\n".join(lines) + "\n\n"

    def publish(self, report: WindowReport) -> None:
        self.stream.write(self.render(report))
        self.stream.flush()


class JsonlReporter(ReportSink):
    def __init__(self, stream: Optional[TextIO] = None, final_only: bool = False):
        self.stream = stream or sys.stdout
        self.final_only = final_only

    def publish(self, report: WindowReport) -> None:
        if self.final_only and not report.final:
            return
        self.stream.write(json.dumps(report.to_dict(), ensure_ascii=False) + "\n")
        self.stream.flush()


class StatusLine:
    """Single overwritable terminal line; disabled when the stream is not a TTY."""

    WIDTH = 100

    def __init__(self, stream: Optional[TextIO] = None, enabled: Optional[bool] = None):
        self.stream = stream or sys.stderr
        if enabled is None:
            enabled = bool(getattr(self.stream, "isatty", lambda: False)())
        self.enabled = enabled
        self._dirty = False

    def update(self, text: str) -> None:
        if not self.enabled:
            return
        self.stream.write("\r" + text[: self.WIDTH].ljust(self.WIDTH))
        self.stream.flush()
        self._dirty = True

    def clear(self) -> None:
        if not self.enabled or not self._dirty:
            return
        self.stream.write("\r" + " " * self.WIDTH + "\r")
        self.stream.flush()
        self._dirty = False
