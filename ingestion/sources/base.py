"""ingestion/sources/base.py

ChainDataProvider interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class ChainDataProvider(ABC):
    @abstractmethod
    def get_signatures_for_address(
        self, address: str, limit: int, before: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Return signatures newest-first, each a dict with `signature` and optional `blockTime`."""

    @abstractmethod
    def get_transaction(
        self, signature: str, max_supported_version: int = 0
    ) -> Optional[Dict[str, Any]]:
        """Return the transaction record (with `meta`) or None if unknown."""

    @abstractmethod
    def get_balance(self, address: str) -> int:
        """Return the native balance in lamports."""
