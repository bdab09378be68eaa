#!/usr/bin/env python3
"""integration/window_runner.py

Windowed trader aggregation pipeline.

For every configured period:
    1. page signatures of the monitored address back to the window start
    2. fetch each transaction (rate-limited), classify it, fold trades into
       a fresh ledger
    3. every `snapshot_interval` signatures publish an intermediate ranking,
       and a final ranking when the window is exhausted

Windows are independent: the ledger is rebuilt per period and every window
is measured from the same `now_ms` captured once per run.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from analysis.ranking import enrich_traders, select_top_traders
from analysis.trade_classifier import is_trade, trade_value
from analysis.trader_ledger import Ledger, LedgerAggregator
from config.tracker_config import TrackerConfig
from ingestion.market.price_oracle import PriceOracle
from ingestion.rpc.errors import MalformedTransactionError
from ingestion.rpc.rate_limiter import RateLimitedClient
from ingestion.sources.base import ChainDataProvider
from ingestion.sources.signature_paginator import SignaturePaginator
from integration.report import ReportSink, StatusLine, WindowReport, format_duration

logger = logging.getLogger(__name__)


@dataclass
class WindowState:
    period_label: str
    window_duration_ms: int
    ledger: Ledger = field(default_factory=dict)
    signatures_seen: int = 0
    transactions_processed: int = 0   # fetched and classified
    transactions_traded: int = 0      # applied to the ledger
    transactions_skipped: int = 0     # missing/malformed records
    transactions_failed: int = 0      # fetch/classify errors

    @property
    def transactions_attempted(self) -> int:
        return self.transactions_processed + self.transactions_skipped + self.transactions_failed

    def to_dict(self) -> Dict[str, Any]:
        return {
            "period": self.period_label,
            "window_duration_ms": self.window_duration_ms,
            "wallets": len(self.ledger),
            "signatures_seen": self.signatures_seen,
            "transactions_processed": self.transactions_processed,
            "transactions_traded": self.transactions_traded,
            "transactions_skipped": self.transactions_skipped,
            "transactions_failed": self.transactions_failed,
        }


def _now_ms() -> int:
    return int(time.time() * 1000)


class WindowRunner:
    """Drives pagination, classification, aggregation and reporting for each window."""

    def __init__(
        self,
        provider: ChainDataProvider,
        client: RateLimitedClient,
        price_oracle: PriceOracle,
        reporter: ReportSink,
        config: Optional[TrackerConfig] = None,
        status: Optional[StatusLine] = None,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.provider = provider
        self.client = client
        self.price_oracle = price_oracle
        self.reporter = reporter
        self.config = config or TrackerConfig()
        self.status = status or StatusLine(enabled=False)
        self._monotonic = monotonic
        self.paginator = SignaturePaginator(
            provider,
            client,
            page_size=self.config.page_size,
            max_per_window=self.config.max_transactions_per_window,
        )

    def run(self, now_ms: Optional[int] = None) -> List[WindowReport]:
        """Run every configured window once.

        Raises PriceUnavailableError before touching any window if the spot
        price cannot be fetched.
        """
        cfg = self.config
        logger.info(f"[window] Tracking the most profitable traders on {cfg.monitored_address}")
        if now_ms is None:
            now_ms = _now_ms()

        price = self.price_oracle.get_spot_price(cfg.price_base, cfg.price_quote)
        logger.info(f"[window] {cfg.price_base} price: {price:.2f} {cfg.price_quote}")

        reports = []
        for label, duration_ms in cfg.period_windows().items():
            reports.append(self.run_window(label, duration_ms, now_ms, price))
        return reports

    def run_window(
        self, period_label: str, window_duration_ms: int, now_ms: int, price: float
    ) -> WindowReport:
        cfg = self.config
        started = self._monotonic()
        state = WindowState(period_label, window_duration_ms)
        aggregator = LedgerAggregator(cfg.volume_attribution, state.ledger)
        logger.info(f"[window] Fetching transactions for the last {period_label}...")

        pending: List[Dict[str, Any]] = []
        next_snapshot = cfg.snapshot_interval

        for page in self.paginator.iter_pages(cfg.monitored_address, now_ms, window_duration_ms):
            pending.extend(page)
            state.signatures_seen += len(page)
            if state.signatures_seen < next_snapshot:
                continue

            self._process_signatures(state, aggregator, pending)
            pending = []
            while next_snapshot <= state.signatures_seen:
                next_snapshot += cfg.snapshot_interval
            self.reporter.publish(self._build_report(state, price, final=False))

        self._process_signatures(state, aggregator, pending)

        if self.paginator.cap_reached:
            logger.info(
                f"[window] Reached maximum transaction limit "
                f"({cfg.max_transactions_per_window}) for {period_label}"
            )

        report = self._build_report(state, price, final=True)
        elapsed_ms = (self._monotonic() - started) * 1000
        logger.info(
            f"[window] Final results for {period_label} "
            f"(processed {state.transactions_processed} transactions in {format_duration(elapsed_ms)})"
        )
        logger.debug(f"[window] {state.to_dict()}")
        self.reporter.publish(report)
        return report

    def _process_signatures(
        self,
        state: WindowState,
        aggregator: LedgerAggregator,
        signatures: List[Dict[str, Any]],
    ) -> None:
        cfg = self.config
        if not signatures:
            return
        logger.info(f"[window] Processing {len(signatures)} transactions...")

        for index, sig_data in enumerate(signatures, start=1):
            if state.transactions_attempted >= cfg.max_transactions_per_period:
                logger.info(
                    f"[window] Period cap ({cfg.max_transactions_per_period}) reached for "
                    f"{state.period_label}; {len(signatures) - index + 1} signatures left unprocessed"
                )
                break

            signature = sig_data.get("signature", "")
            try:
                tx = self.client.call(
                    lambda: self.provider.get_transaction(signature, max_supported_version=0)
                )
                if self._apply_transaction(aggregator, tx, signature):
                    state.transactions_traded += 1
                state.transactions_processed += 1
            except MalformedTransactionError as e:
                state.transactions_skipped += 1
                logger.debug(f"[window] Skipping {signature}: {e}")
            except Exception as e:
                state.transactions_failed += 1
                logger.warning(f"[window] Error processing transaction {signature}: {e}")

            if index % cfg.progress_every == 0:
                self.status.update(f"Processed {index}/{len(signatures)} transactions...")

        self.status.clear()

    def _apply_transaction(
        self, aggregator: LedgerAggregator, tx: Optional[Dict[str, Any]], signature: str
    ) -> bool:
        """Classify one transaction and fold it into the ledger. True if it was a trade."""
        if not tx or not isinstance(tx.get("meta"), dict):
            raise MalformedTransactionError(f"transaction {signature} has no balance metadata")
        if not is_trade(tx):
            return False
        value = trade_value(tx, self.config.dust_threshold_sol)
        if value == 0:
            return False
        aggregator.apply(tx, value)
        return True

    def _build_report(self, state: WindowState, price: float, final: bool) -> WindowReport:
        cfg = self.config
        top = select_top_traders(
            state.ledger,
            k=cfg.top_k,
            min_trades=cfg.min_trades,
            min_win_rate=cfg.min_win_rate,
        )
        traders = enrich_traders(top, self._lookup_balance, price)
        return WindowReport(
            period_label=state.period_label,
            price=price,
            traders=traders,
            signatures_seen=state.signatures_seen,
            transactions_processed=state.transactions_processed,
            final=final,
        )

    def _lookup_balance(self, address: str) -> int:
        return self.client.call(lambda: self.provider.get_balance(address))
