"""
chains/providers.py - JSON-RPC access with endpoint failover.

Provides:
- Multiple endpoint failover (first healthy endpoint wins)
- ${ENV_VAR} placeholders in endpoint URLs
- Request timeout handling
- Latency tracking per endpoint
"""

import os
import re
import time
from dataclasses import dataclass
from typing import Any

import httpx

from core.constants import ErrorCode
from core.exceptions import InfraError
from core.logging import get_logger

logger = get_logger(__name__)

_PLACEHOLDER_RE = re.compile(r"\$\{([A-Z0-9_]+)\}")


@dataclass
class RPCStats:
    """Statistics for an RPC endpoint."""
    url: str
    total_requests: int = 0
    successful_requests: int = 0
    failed_requests: int = 0
    total_latency_ms: int = 0
    last_error: str | None = None

    @property
    def avg_latency_ms(self) -> int:
        if self.successful_requests == 0:
            return 0
        return self.total_latency_ms // self.successful_requests

    @property
    def success_rate(self) -> float:
        if self.total_requests == 0:
            return 0.0
        return self.successful_requests / self.total_requests


@dataclass
class RPCResponse:
    """Response from an RPC call."""
    result: Any
    latency_ms: int
    endpoint_used: str


def resolve_url(url: str) -> str | None:
    """Fill ${VAR} placeholders from the environment; None if one is unset."""
    missing = False

    def _sub(match: re.Match) -> str:
        nonlocal missing
        value = os.getenv(match.group(1), "")
        if not value:
            missing = True
        return value

    resolved = _PLACEHOLDER_RE.sub(_sub, url)
    return None if missing else resolved


class RPCProvider:
    """
    RPC provider with failover support.

    Tries endpoints in order until one succeeds. A JSON-RPC error, a
    timeout or a transport failure moves on to the next endpoint; only
    when all fail is InfraError raised.
    """

    def __init__(
        self,
        rpc_urls: list[str],
        timeout_seconds: float = 10,
        client: httpx.AsyncClient | None = None,
    ):
        self.timeout_seconds = timeout_seconds
        self._client = client
        self._owns_client = client is None
        self._request_id = 0

        self.rpc_urls = [u for u in (resolve_url(url) for url in rpc_urls if url) if u]
        self.stats: dict[str, RPCStats] = {
            url: RPCStats(url=url) for url in self.rpc_urls
        }

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout_seconds),
                limits=httpx.Limits(max_connections=10),
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this provider created it."""
        if self._client and self._owns_client:
            await self._client.aclose()
        self._client = None

    def _next_request_id(self) -> int:
        self._request_id += 1
        return self._request_id

    async def call(
        self,
        method: str,
        params: list | None = None,
    ) -> RPCResponse:
        """
        Make an RPC call with failover.

        Raises:
            InfraError: If no endpoint is configured or all endpoints fail
        """
        if not self.rpc_urls:
            raise InfraError(
                code=ErrorCode.INFRA_RPC_ERROR,
                message="No RPC endpoints configured",
                details={"method": method},
            )

        client = await self._get_client()
        last_error: Exception | None = None
        timed_out = False

        for url in self.rpc_urls:
            stats = self.stats[url]
            stats.total_requests += 1

            payload = {
                "jsonrpc": "2.0",
                "method": method,
                "params": params or [],
                "id": self._next_request_id(),
            }

            start_ms = int(time.time() * 1000)

            try:
                resp = await client.post(url, json=payload)
                latency_ms = int(time.time() * 1000) - start_ms
                result = resp.json()

                if "error" in result:
                    error = result["error"]
                    error_msg = error.get("message", str(error)) if isinstance(error, dict) else str(error)
                    stats.failed_requests += 1
                    stats.last_error = error_msg
                    last_error = InfraError(
                        code=ErrorCode.INFRA_RPC_ERROR,
                        message=f"RPC error: {error_msg}",
                        details={"url": url, "method": method},
                    )
                    logger.debug(f"RPC error from {url}: {error_msg}")
                    continue

                stats.successful_requests += 1
                stats.total_latency_ms += latency_ms

                return RPCResponse(
                    result=result.get("result"),
                    latency_ms=latency_ms,
                    endpoint_used=url,
                )

            except httpx.TimeoutException as e:
                latency_ms = int(time.time() * 1000) - start_ms
                stats.failed_requests += 1
                stats.last_error = f"Timeout after {latency_ms}ms"
                last_error = e
                timed_out = True
                logger.debug(f"RPC timeout for {url}: {latency_ms}ms")
                continue

            except (httpx.HTTPError, ValueError) as e:
                stats.failed_requests += 1
                stats.last_error = str(e)
                last_error = e
                logger.debug(f"RPC failed for {url}: {e}")
                continue

        raise InfraError(
            code=ErrorCode.INFRA_TIMEOUT if timed_out and len(self.rpc_urls) == 1 else ErrorCode.INFRA_RPC_ERROR,
            message=f"All RPC endpoints failed for {method}",
            details={
                "method": method,
                "endpoints_tried": len(self.rpc_urls),
                "last_error": str(last_error),
            },
        )

    async def eth_call(
        self,
        to: str,
        data: str,
        block: str = "latest",
    ) -> str:
        """eth_call returning the raw hex result."""
        response = await self.call(
            "eth_call",
            [{"to": to, "data": data}, block],
        )
        if not isinstance(response.result, str):
            raise InfraError(
                code=ErrorCode.INFRA_BAD_RESPONSE,
                message="eth_call returned no data",
                details={"to": to, "endpoint": response.endpoint_used},
            )
        return response.result

    async def get_gas_price(self) -> int:
        """Current gas price in wei."""
        response = await self.call("eth_gasPrice")
        try:
            return int(response.result, 16)
        except (TypeError, ValueError) as e:
            raise InfraError(
                code=ErrorCode.INFRA_BAD_RESPONSE,
                message=f"Bad eth_gasPrice result: {response.result!r}",
                details={"endpoint": response.endpoint_used},
            ) from e

    def get_stats_summary(self) -> dict:
        """Statistics summary for all endpoints."""
        return {
            url: {
                "total_requests": s.total_requests,
                "success_rate": round(s.success_rate, 3),
                "avg_latency_ms": s.avg_latency_ms,
                "last_error": s.last_error,
            }
            for url, s in self.stats.items()
        }
