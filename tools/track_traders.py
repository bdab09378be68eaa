#!/usr/bin/env python3
"""tools/track_traders.py

CLI for ranking the most profitable traders of a program address
(Pump.fun by default) over rolling windows.

Usage:
    python3 -m tools.track_traders \
        --config config/tracker.yaml \
        --period 24h --period 7d \
        --format table

Environment:
    SOLANA_RPC_URL: RPC endpoint (overrides config)
    HELIUS_API_KEY: use the Helius mainnet endpoint when no URL is set

Exit codes: 0 success, 1 fatal error, 130 interrupted.
"""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import replace
from typing import List, Optional, TextIO

from config.tracker_config import ConfigError, TrackerConfig, load_tracker_config
from ingestion.market.price_oracle import build_price_oracle
from ingestion.rpc.client import SolanaRpcClient
from ingestion.rpc.errors import TrackerError
from ingestion.rpc.rate_limiter import RateGate, RateLimitedClient
from integration.report import JsonlReporter, ReportSink, StatusLine, TableReporter
from integration.window_runner import WindowRunner

logger = logging.getLogger("tools.track_traders")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Rank the most profitable traders of a Solana program over rolling windows"
    )
    ap.add_argument("--config", default="", help="YAML config file (default: built-in defaults)")
    ap.add_argument(
        "--period",
        action="append",
        default=[],
        help="Period label to run (e.g. 24h, 7d); repeatable, default: all configured periods",
    )
    ap.add_argument("--format", choices=("table", "jsonl"), default="table")
    ap.add_argument(
        "--final-only",
        action="store_true",
        help="Only emit final per-window results (skip intermediate snapshots)",
    )
    ap.add_argument("--output", default="-", help="Output file (default: stdout)")
    ap.add_argument("--verbose", action="store_true", help="Debug logging")
    return ap


def build_reporter(fmt: str, stream: TextIO, final_only: bool) -> ReportSink:
    if fmt == "jsonl":
        return JsonlReporter(stream, final_only=final_only)
    reporter = TableReporter(stream)
    if not final_only:
        return reporter
    return _FinalOnly(reporter)


class _FinalOnly(ReportSink):
    def __init__(self, inner: ReportSink):
        self.inner = inner

    def publish(self, report) -> None:
        if report.final:
            self.inner.publish(report)


def build_runner(cfg: TrackerConfig, reporter: ReportSink, status: StatusLine) -> WindowRunner:
    """Wire provider, price oracle and reporter around one shared rate gate."""
    gate = RateGate(min_interval_ms=cfg.base_delay_ms)
    client = RateLimitedClient(
        gate,
        max_retries=cfg.max_retries,
        initial_backoff_ms=cfg.initial_backoff_ms,
        on_backoff=status.update,
        on_resume=status.clear,
    )
    provider = SolanaRpcClient(rpc_url=cfg.rpc_url, timeout=cfg.request_timeout)
    oracle = build_price_oracle(cfg.price_provider, limiter=client, timeout=cfg.request_timeout)
    return WindowRunner(provider, client, oracle, reporter, config=cfg, status=status)


def main(argv: Optional[List[str]] = None) -> int:
    """CLI entry point."""
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        datefmt="%H:%M:%S",
    )

    try:
        cfg = load_tracker_config(args.config or None)
        if args.period:
            cfg = replace(cfg, periods=tuple(args.period))
    except (ConfigError, ValueError) as e:
        logger.error(f"[tracker] Invalid configuration: {e}")
        return 1

    try:
        output_file = sys.stdout if args.output == "-" else open(args.output, "w", encoding="utf-8")
    except OSError as e:
        logger.error(f"[tracker] Cannot open output {args.output}: {e}")
        return 1

    try:
        status = StatusLine(sys.stderr)
        runner = build_runner(cfg, build_reporter(args.format, output_file, args.final_only), status)
        runner.run()
    except KeyboardInterrupt:
        logger.error("[tracker] Interrupted")
        return 130
    except TrackerError as e:
        logger.error(f"[tracker] Error running wallet tracker: {e}")
        return 1
    except Exception as e:
        logger.exception(f"[tracker] Unexpected error running wallet tracker: {e}")
        return 1
    finally:
        if args.output != "-":
            output_file.close()

    return 0


if __name__ == "__main__":
    sys.exit(main())
