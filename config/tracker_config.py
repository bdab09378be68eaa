"""config/tracker_config.py

Configuration schema and YAML loader for the trader tracker.

Implements manual validation in __post_init__ (no Pydantic dependency).
Environment overrides:
    SOLANA_RPC_URL: explicit RPC endpoint
    HELIUS_API_KEY: builds a Helius endpoint when no explicit URL is set
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Tuple

import yaml

from analysis.trader_ledger import VolumeAttribution
from ingestion.rpc.client import DEFAULT_RPC_URL, HELIUS_RPC_URL

PUMPFUN_PROGRAM = "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P"
DEFAULT_PERIODS: Tuple[str, ...] = ("24h", "7d", "30d", "1y")

_UNIT_MS = {
    "m": 60 * 1000,
    "h": 60 * 60 * 1000,
    "d": 24 * 60 * 60 * 1000,
    "w": 7 * 24 * 60 * 60 * 1000,
    "y": 365 * 24 * 60 * 60 * 1000,
}
_PERIOD_RE = re.compile(r"^\s*(\d+)\s*([mhdwy])\s*$")


class ConfigError(RuntimeError):
    pass


def parse_period(label: str) -> int:
    """Convert a period label (`24h`, `7d`, `1y`, ...) to milliseconds."""
    m = _PERIOD_RE.match(str(label))
    if not m:
        raise ConfigError(f"Invalid period label: {label!r} (expected <n>m|h|d|w|y)")
    amount = int(m.group(1))
    if amount <= 0:
        raise ConfigError(f"Period must be positive: {label!r}")
    return amount * _UNIT_MS[m.group(2)]


@dataclass(frozen=True)
class TrackerConfig:
    # Provider
    rpc_url: str = DEFAULT_RPC_URL
    monitored_address: str = PUMPFUN_PROGRAM
    request_timeout: float = 30.0

    # Windows
    periods: Tuple[str, ...] = DEFAULT_PERIODS

    # Rate limiting: 100ms between requests = 10 requests/second
    base_delay_ms: float = 100.0
    max_retries: int = 5
    initial_backoff_ms: float = 1000.0

    # Pagination / caps
    page_size: int = 50
    max_transactions_per_window: int = 800
    max_transactions_per_period: int = 1000
    snapshot_interval: int = 200
    progress_every: int = 10

    # Ranking
    min_trades: int = 3
    min_win_rate: float = 0.5
    top_k: int = 10

    # Classification / aggregation
    dust_threshold_sol: float = 0.001
    volume_attribution: VolumeAttribution = VolumeAttribution.PER_PARTICIPANT_FULL

    # Pricing
    price_provider: str = "coingecko"
    price_base: str = "SOL"
    price_quote: str = "USD"

    def __post_init__(self):
        """Validate constraints manually since we don't have Pydantic."""
        if isinstance(self.periods, str) or not self.periods:
            raise ValueError("periods must be a non-empty list of labels")
        object.__setattr__(self, "periods", tuple(str(p) for p in self.periods))
        for label in self.periods:
            try:
                parse_period(label)
            except ConfigError as e:
                raise ValueError(str(e)) from e

        try:
            object.__setattr__(self, "volume_attribution", VolumeAttribution(self.volume_attribution))
        except ValueError:
            allowed = ", ".join(v.value for v in VolumeAttribution)
            raise ValueError(f"volume_attribution must be one of {allowed}, got {self.volume_attribution}")

        if self.price_provider not in ("coingecko", "pyth"):
            raise ValueError(f"price_provider must be coingecko|pyth, got {self.price_provider}")
        if not self.rpc_url:
            raise ValueError("rpc_url must not be empty")
        if not self.monitored_address:
            raise ValueError("monitored_address must not be empty")

        self._validate_range("request_timeout", self.request_timeout, 1, 300)
        self._validate_range("base_delay_ms", self.base_delay_ms, 0, 60_000)
        self._validate_range("max_retries", self.max_retries, 0, 20)
        self._validate_range("initial_backoff_ms", self.initial_backoff_ms, 0, 600_000)
        # getSignaturesForAddress accepts at most 1000 per request
        self._validate_range("page_size", self.page_size, 1, 1000)
        self._validate_range("max_transactions_per_window", self.max_transactions_per_window, 1, None)
        self._validate_range("max_transactions_per_period", self.max_transactions_per_period, 1, None)
        self._validate_range("snapshot_interval", self.snapshot_interval, 1, None)
        self._validate_range("progress_every", self.progress_every, 1, None)
        self._validate_range("min_trades", self.min_trades, 1, None)
        self._validate_range("min_win_rate", self.min_win_rate, 0.0, 1.0)
        self._validate_range("top_k", self.top_k, 1, 1000)
        self._validate_range("dust_threshold_sol", self.dust_threshold_sol, 0.0, None)

    def _validate_range(self, name: str, value: Any, min_val: float, max_val: Optional[float] = None) -> None:
        try:
            val = float(value)
        except (TypeError, ValueError):
            raise ValueError(f"{name} must be numeric, got {value}")

        if val < min_val:
            raise ValueError(f"{name} {val} is below minimum {min_val}")
        if max_val is not None and val > max_val:
            raise ValueError(f"{name} {val} is above maximum {max_val}")

    def period_windows(self) -> Dict[str, int]:
        """Ordered mapping period label -> window duration in ms."""
        return {label: parse_period(label) for label in self.periods}

    def to_dict(self) -> Dict[str, Any]:
        out = {f.name: getattr(self, f.name) for f in fields(self)}
        out["periods"] = list(self.periods)
        out["volume_attribution"] = self.volume_attribution.value
        return out


def apply_env_overrides(raw: Dict[str, Any], env: Mapping[str, str]) -> Dict[str, Any]:
    """SOLANA_RPC_URL wins; otherwise HELIUS_API_KEY selects a Helius endpoint."""
    out = dict(raw)
    rpc_url = (env.get("SOLANA_RPC_URL") or "").strip()
    api_key = (env.get("HELIUS_API_KEY") or "").strip()
    if rpc_url:
        out["rpc_url"] = rpc_url
    elif api_key and not out.get("rpc_url"):
        out["rpc_url"] = HELIUS_RPC_URL.format(api_key=api_key)
    return out


def load_tracker_config(
    path: Optional[str] = None,
    env: Optional[Mapping[str, str]] = None,
) -> TrackerConfig:
    """Load config from YAML (optional) plus environment overrides."""
    raw: Dict[str, Any] = {}
    if path:
        p = Path(path)
        if not p.exists():
            raise ConfigError(f"Config not found: {p}")
        loaded = yaml.safe_load(p.read_text(encoding="utf-8"))
        if loaded is None:
            loaded = {}
        if not isinstance(loaded, dict):
            raise ConfigError(f"{p.name} must be a YAML mapping (dict at top-level)")
        raw = loaded

    known = {f.name for f in fields(TrackerConfig)}
    unknown = sorted(set(raw) - known)
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")

    raw = apply_env_overrides(raw, os.environ if env is None else env)
    try:
        return TrackerConfig(**raw)
    except (TypeError, ValueError) as e:
        raise ConfigError(str(e)) from e
