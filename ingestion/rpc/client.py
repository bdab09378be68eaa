"""
ingestion/rpc/client.py

SolanaRpcClient — JSON-RPC 2.0 chain data provider over requests.

Retries are NOT done here: 429s surface as RateLimitedError so the shared
RateLimitedClient can back off, and transport failures surface as
ProviderUnavailableError.
"""
import logging
from typing import Any, Dict, List, Optional

import requests

from ingestion.sources.base import ChainDataProvider

from .errors import ProviderUnavailableError, RateLimitedError

logger = logging.getLogger(__name__)


DEFAULT_RPC_URL = "https://api.mainnet-beta.solana.com"
HELIUS_RPC_URL = "https://mainnet.helius-rpc.com/?api-key={api_key}"
DEFAULT_TIMEOUT = 30  # seconds
DEFAULT_COMMITMENT = "confirmed"


class SolanaRpcClient(ChainDataProvider):
    """
    Chain data provider backed by a Solana JSON-RPC endpoint.

    Supports:
    - getSignaturesForAddress with `before` cursor pagination
    - getTransaction (json encoding, versioned transactions)
    - getBalance
    """

    def __init__(
        self,
        rpc_url: str = DEFAULT_RPC_URL,
        timeout: float = DEFAULT_TIMEOUT,
        commitment: str = DEFAULT_COMMITMENT,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize SolanaRpcClient.

        Args:
            rpc_url: RPC endpoint URL
            timeout: Request timeout in seconds
            commitment: Commitment level sent with every request
            session: Optional requests session (tests inject a fake)
        """
        self.rpc_url = rpc_url
        self.timeout = timeout
        self.commitment = commitment
        self._session = session or requests.Session()
        self._request_id = 0

        # Metrics for monitoring
        self._http_calls = 0

    def _make_request(self, method: str, params: List[Any]) -> Any:
        """Make a single JSON-RPC request and return its `result`."""
        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }
        logger.debug(f"[rpc] {method} id={self._request_id}")

        try:
            response = self._session.post(self.rpc_url, json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            raise ProviderUnavailableError(f"{method} timed out: {e}") from e
        except requests.exceptions.ConnectionError as e:
            raise ProviderUnavailableError(f"{method} connection error: {e}") from e
        self._http_calls += 1

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            raise RateLimitedError(
                f"{method} rate limited: 429 Too Many Requests",
                retry_after=float(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if response.status_code >= 500:
            raise ProviderUnavailableError(f"{method} server error: HTTP {response.status_code}")
        try:
            response.raise_for_status()
        except requests.exceptions.HTTPError as e:
            raise ProviderUnavailableError(f"{method} rejected: {e}") from e

        try:
            body = response.json()
        except ValueError as e:
            raise ProviderUnavailableError(f"{method} returned invalid JSON: {e}") from e
        if not isinstance(body, dict):
            raise ProviderUnavailableError(f"{method} returned unexpected payload: {type(body).__name__}")
        if "error" in body:
            error = body.get("error") or {}
            code = error.get("code", -1)
            message = error.get("message", "")
            if code == 429 or "too many requests" in str(message).lower():
                raise RateLimitedError(f"{method} rate limited: {code} {message}")
            raise ProviderUnavailableError(f"{method} JSON-RPC error {code}: {message}")

        return body.get("result")

    def get_signatures_for_address(
        self, address: str, limit: int, before: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        options: Dict[str, Any] = {"limit": limit, "commitment": self.commitment}
        if before is not None:
            options["before"] = before
        result = self._make_request("getSignaturesForAddress", [address, options])
        return result or []

    def get_transaction(
        self, signature: str, max_supported_version: int = 0
    ) -> Optional[Dict[str, Any]]:
        options = {
            "encoding": "json",
            "commitment": self.commitment,
            "maxSupportedTransactionVersion": max_supported_version,
        }
        return self._make_request("getTransaction", [signature, options])

    def get_balance(self, address: str) -> int:
        result = self._make_request("getBalance", [address, {"commitment": self.commitment}])
        # getBalance wraps the lamports in an RpcResponse context
        if isinstance(result, dict):
            return int(result.get("value", 0))
        return int(result or 0)

    def get_metrics(self) -> Dict[str, Any]:
        return {"http_calls": self._http_calls, "rpc_url": self.rpc_url}

    def close(self) -> None:
        """Close the underlying requests session."""
        self._session.close()
