"""ingestion/sources/signature_paginator.py

SignaturePaginator: walks getSignaturesForAddress history backwards in time
for one monitored address, bounded by a time window and a per-window cap.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterator, List, Optional

from ingestion.rpc.rate_limiter import RateLimitedClient

from .base import ChainDataProvider

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 50
DEFAULT_MAX_PER_WINDOW = 800


def block_time_ms(sig_data: Dict[str, Any]) -> int:
    """blockTime (unix seconds) as milliseconds; missing/null counts as 0."""
    block_time = sig_data.get("blockTime")
    return int(block_time) * 1000 if block_time else 0


class SignaturePaginator:
    """Produce a descending, window-bounded sequence of signature records.

    Stop rules, in priority order:
        1. empty page -> end of history
        2. oldest entry of the page is outside the window -> keep the
           in-window entries of that page and stop
        3. accumulated count reaches `max_per_window` -> stop (the last
           page is trimmed so the cap is never exceeded)
    """

    def __init__(
        self,
        provider: ChainDataProvider,
        client: RateLimitedClient,
        page_size: int = DEFAULT_PAGE_SIZE,
        max_per_window: int = DEFAULT_MAX_PER_WINDOW,
    ):
        if page_size <= 0:
            raise ValueError(f"page_size must be > 0, got {page_size}")
        if max_per_window <= 0:
            raise ValueError(f"max_per_window must be > 0, got {max_per_window}")
        self.provider = provider
        self.client = client
        self.page_size = page_size
        self.max_per_window = max_per_window
        # Set when the last walk stopped on the cap.
        self.cap_reached = False

    def _fetch_page(self, address: str, before: Optional[str]) -> List[Dict[str, Any]]:
        return self.client.call(
            lambda: self.provider.get_signatures_for_address(
                address, limit=self.page_size, before=before
            )
        ) or []

    def iter_pages(
        self, address: str, now_ms: int, window_duration_ms: int
    ) -> Iterator[List[Dict[str, Any]]]:
        """Yield pages of in-window signature records, newest first."""
        cutoff_ms = now_ms - window_duration_ms
        before: Optional[str] = None
        total = 0
        self.cap_reached = False

        while total < self.max_per_window:
            signatures = self._fetch_page(address, before)
            if not signatures:
                logger.debug(f"[paginator] End of history for {address} after {total} signatures")
                return

            remaining = self.max_per_window - total

            if block_time_ms(signatures[-1]) < cutoff_ms:
                page = [s for s in signatures if block_time_ms(s) >= cutoff_ms][:remaining]
                total += len(page)
                logger.debug(
                    f"[paginator] Window boundary reached: kept {len(page)}/{len(signatures)} of last page"
                )
                if page:
                    yield page
                return

            page = signatures[:remaining]
            total += len(page)
            before = signatures[-1].get("signature")
            yield page
            if not before and total < self.max_per_window:
                logger.warning(
                    f"[paginator] Page for {address} ended without a signature cursor; stopping after {total}"
                )
                return

        self.cap_reached = True
        logger.info(f"[paginator] Reached maximum transaction limit ({self.max_per_window})")

    def collect(self, address: str, now_ms: int, window_duration_ms: int) -> List[Dict[str, Any]]:
        """All in-window signature records as one list."""
        out: List[Dict[str, Any]] = []
        for page in self.iter_pages(address, now_ms, window_duration_ms):
            out.extend(page)
        return out
