"""
chains/advisory_http.py - HTTP client for the advisory service.

POSTs {opportunity, context} as JSON and hands the raw body back; parsing
is the advisory gate's job. The gate also owns the overall timeout; the
client timeout here only bounds the transport.
"""

from typing import Any, Dict

import httpx

from core.constants import ErrorCode
from core.exceptions import AdvisoryError
from core.logging import get_logger

logger = get_logger(__name__)


class HttpAdvisoryService:
    """AdvisoryService over HTTP with optional bearer token."""

    def __init__(
        self,
        url: str,
        api_key: str = "",
        timeout_seconds: float = 10,
        client: httpx.AsyncClient | None = None,
    ):
        self.url = url
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self._client = client
        self._owns_client = client is None

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=httpx.Timeout(self.timeout_seconds))
        return self._client

    async def close(self) -> None:
        if self._client and self._owns_client:
            await self._client.aclose()
        self._client = None

    async def evaluate(self, request: Dict[str, Any]) -> str:
        client = await self._get_client()
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            resp = await client.post(self.url, json=request, headers=headers)
            resp.raise_for_status()
        except httpx.TimeoutException as e:
            raise AdvisoryError(
                f"Advisory request timed out: {e}",
                details={"url": self.url},
            ) from e
        except httpx.HTTPStatusError as e:
            raise AdvisoryError(
                f"Advisory returned HTTP {e.response.status_code}",
                details={"url": self.url, "status_code": e.response.status_code},
            ) from e
        except httpx.HTTPError as e:
            raise AdvisoryError(
                f"Advisory request failed: {e}",
                details={"url": self.url},
            ) from e

        if not resp.text.strip():
            raise AdvisoryError(
                "Advisory returned an empty body",
                code=ErrorCode.ADVISORY_MALFORMED,
                details={"url": self.url},
            )
        return resp.text
