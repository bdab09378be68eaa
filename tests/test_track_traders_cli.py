from __future__ import annotations

import io

import pytest

from conftest import NOW_MS, FakeOracle, FakeProvider
from config.tracker_config import TrackerConfig
from ingestion.rpc.errors import PriceUnavailableError
from integration.report import JsonlReporter, TableReporter, WindowReport
from integration.window_runner import WindowRunner
from tools import track_traders


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    monkeypatch.delenv("SOLANA_RPC_URL", raising=False)
    monkeypatch.delenv("HELIUS_API_KEY", raising=False)


class StubRunner:
    def __init__(self, error=None):
        self.error = error
        self.ran = False

    def run(self):
        self.ran = True
        if self.error is not None:
            raise self.error
        return []


def test_success_returns_zero(monkeypatch):
    seen = {}

    def fake_build_runner(cfg, reporter, status):
        seen["cfg"] = cfg
        seen["reporter"] = reporter
        seen["runner"] = StubRunner()
        return seen["runner"]

    monkeypatch.setattr(track_traders, "build_runner", fake_build_runner)

    assert track_traders.main(["--period", "24h", "--format", "jsonl"]) == 0
    assert seen["runner"].ran is True
    assert seen["cfg"].periods == ("24h",)
    assert isinstance(seen["reporter"], JsonlReporter)


def test_price_failure_exits_non_zero(monkeypatch):
    monkeypatch.setattr(
        track_traders,
        "build_runner",
        lambda cfg, reporter, status: StubRunner(PriceUnavailableError("no price")),
    )

    assert track_traders.main([]) == 1


def test_invalid_period_exits_non_zero():
    assert track_traders.main(["--period", "forever"]) == 1


def test_missing_config_exits_non_zero(tmp_path):
    assert track_traders.main(["--config", str(tmp_path / "missing.yaml")]) == 1


def test_output_file_receives_report(monkeypatch, tmp_path):
    out = tmp_path / "report.jsonl"

    def fake_build_runner(cfg, reporter, status):
        class Runner:
            def run(self):
                reporter.publish(WindowReport("24h", 100.0, final=True))

        return Runner()

    monkeypatch.setattr(track_traders, "build_runner", fake_build_runner)

    assert track_traders.main(["--format", "jsonl", "--output", str(out)]) == 0
    assert '"period": "24h"' in out.read_text(encoding="utf-8")


def test_unwritable_output_exits_non_zero(monkeypatch, tmp_path):
    built = []
    monkeypatch.setattr(track_traders, "build_runner", lambda cfg, reporter, status: built.append(cfg))

    assert track_traders.main(["--output", str(tmp_path / "no-such-dir" / "report.jsonl")]) == 1
    assert built == []


def test_table_final_only_filters_snapshots():
    stream = io.StringIO()
    reporter = track_traders.build_reporter("table", stream, final_only=True)

    reporter.publish(WindowReport("24h", 100.0, final=False))
    assert stream.getvalue() == ""
    reporter.publish(WindowReport("24h", 100.0, final=True))
    assert "Final results" in stream.getvalue()


def test_build_runner_wires_shared_gate():
    cfg = TrackerConfig(base_delay_ms=250, max_retries=2)
    runner = track_traders.build_runner(cfg, TableReporter(io.StringIO()), track_traders.StatusLine(enabled=False))

    assert runner.client.gate.min_interval_ms == 250
    assert runner.client.max_retries == 2
    assert runner.paginator.client is runner.client
    assert runner.price_oracle._limiter is runner.client


def test_runner_end_to_end_with_fakes(no_sleep_client):
    stream = io.StringIO()
    runner = WindowRunner(
        FakeProvider(signatures=[]),
        no_sleep_client,
        FakeOracle(),
        track_traders.build_reporter("table", stream, final_only=False),
        config=TrackerConfig(periods=("24h",), base_delay_ms=0),
    )

    runner.run(now_ms=NOW_MS)

    assert "Final results" in stream.getvalue()
