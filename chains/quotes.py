"""
chains/quotes.py - Market data adapters.

- RouterPoolQuoter: DEX quote via a V2-style router's getAmountsOut
- RpcGasEstimator: gas price from RPC, priced in quote currency
- HttpPriceSource: CEX ticker over HTTP
"""

import time
from decimal import Decimal, InvalidOperation
from typing import Awaitable, Callable

import httpx

from chains.providers import RPCProvider
from core.constants import ErrorCode
from core.exceptions import InfraError
from core.logging import get_logger
from core.models import GasEstimate, PriceQuote
from core.time import now_timestamp

logger = get_logger(__name__)

WEI_PER_NATIVE = Decimal(10) ** 18


# =============================================================================
# ABI ENCODING (UniswapV2Router02-compatible)
# =============================================================================

# function getAmountsOut(uint256 amountIn, address[] path) returns (uint256[] amounts)
# Selector: keccak256("getAmountsOut(uint256,address[])")[:4] = 0xd06ca61f
SELECTOR_GET_AMOUNTS_OUT = "d06ca61f"


def _word(value: int) -> str:
    return hex(value)[2:].zfill(64)


def encode_get_amounts_out(amount_in: int, path: list[str]) -> str:
    """
    Encode getAmountsOut(uint256, address[]).

    Layout: amountIn | offset of path (0x40) | path length | path items
    """
    addresses = "".join(a.lower().replace("0x", "").zfill(64) for a in path)
    return (
        f"0x{SELECTOR_GET_AMOUNTS_OUT}"
        f"{_word(amount_in)}"
        f"{_word(64)}"
        f"{_word(len(path))}"
        f"{addresses}"
    )


def decode_amounts_out(hex_result: str) -> list[int]:
    """
    Decode a uint256[] return value.

    Raises:
        InfraError(INFRA_BAD_RESPONSE): empty or truncated data
    """
    data = hex_result[2:] if hex_result.startswith("0x") else hex_result
    if len(data) < 128:
        raise InfraError(
            code=ErrorCode.INFRA_BAD_RESPONSE,
            message=f"getAmountsOut response too short: {len(data)} chars",
            details={"raw": hex_result[:100]},
        )

    offset = int(data[0:64], 16) * 2
    length = int(data[offset:offset + 64], 16)
    start = offset + 64
    if len(data) < start + length * 64:
        raise InfraError(
            code=ErrorCode.INFRA_BAD_RESPONSE,
            message="getAmountsOut response truncated",
            details={"length": length, "raw": hex_result[:100]},
        )
    return [int(data[start + i * 64:start + (i + 1) * 64], 16) for i in range(length)]


# =============================================================================
# ADAPTERS
# =============================================================================

class RouterPoolQuoter:
    """
    Pool quote through a router's getAmountsOut.

    Usage:
        quoter = RouterPoolQuoter(provider, router_address)
        amount_out = await quoter.get_pool_quote(token_in, token_out, amount_in)
    """

    def __init__(self, provider: RPCProvider, router_address: str):
        self.provider = provider
        self.router_address = router_address

    async def get_pool_quote(self, token_in: str, token_out: str, amount_in: int) -> int:
        call_data = encode_get_amounts_out(amount_in, [token_in, token_out])
        start_ms = int(time.time() * 1000)
        result = await self.provider.eth_call(to=self.router_address, data=call_data)
        amounts = decode_amounts_out(result)

        if len(amounts) < 2 or amounts[-1] <= 0:
            raise InfraError(
                code=ErrorCode.INFRA_BAD_RESPONSE,
                message="Router returned no output amount",
                details={
                    "router": self.router_address,
                    "token_in": token_in,
                    "token_out": token_out,
                    "amount_in": amount_in,
                    "amounts": amounts,
                },
            )

        logger.debug(
            "Pool quote",
            extra={"context": {
                "token_in": token_in,
                "token_out": token_out,
                "amount_in": amount_in,
                "amount_out": amounts[-1],
                "latency_ms": int(time.time() * 1000) - start_ms,
            }},
        )
        return amounts[-1]


class RpcGasEstimator:
    """
    Gas cost of an operation in quote currency.

    cost = op_units * gas_price / 1e18 * native_price
    native_price is awaited from the injected callable each time (the
    pipeline passes the CEX price of the native token).
    """

    def __init__(
        self,
        provider: RPCProvider,
        native_price: Callable[[], Awaitable[Decimal]],
    ):
        self.provider = provider
        self.native_price = native_price

    async def estimate_gas(self, op_units: int) -> GasEstimate:
        gas_price = await self.provider.get_gas_price()
        native_price = await self.native_price()
        cost_native = Decimal(op_units) * Decimal(gas_price) / WEI_PER_NATIVE
        return GasEstimate(
            gas_units=op_units,
            gas_price=gas_price,
            cost_in_quote=cost_native * native_price,
        )


class HttpPriceSource:
    """
    CEX ticker price over HTTP.

    Expects the public get-ticker shape:
        {"result": {"data": [{"i": "CRO_USDT", "a": "0.0850", "t": 1700000000000}]}}
    where "a" is the latest trade price and "t" the exchange timestamp (ms).
    """

    def __init__(
        self,
        ticker_url: str,
        timeout_seconds: float = 10,
        client: httpx.AsyncClient | None = None,
    ):
        self.ticker_url = ticker_url
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

    async def get_price(self, symbol: str) -> PriceQuote:
        client = await self._get_client()
        try:
            resp = await client.get(self.ticker_url, params={"instrument_name": symbol})
            resp.raise_for_status()
            body = resp.json()
        except httpx.TimeoutException as e:
            raise InfraError(
                code=ErrorCode.INFRA_TIMEOUT,
                message=f"Ticker request timed out for {symbol}",
                details={"url": self.ticker_url, "symbol": symbol},
            ) from e
        except (httpx.HTTPError, ValueError) as e:
            raise InfraError(
                code=ErrorCode.INFRA_RPC_ERROR,
                message=f"Ticker request failed for {symbol}: {e}",
                details={"url": self.ticker_url, "symbol": symbol},
            ) from e

        return parse_ticker(body, symbol)


def parse_ticker(body: dict, symbol: str) -> PriceQuote:
    """Extract a PriceQuote from a get-ticker response body."""
    data = (body.get("result") or {}).get("data")
    if isinstance(data, list):
        data = data[0] if data else None
    if not isinstance(data, dict) or "a" not in data:
        raise InfraError(
            code=ErrorCode.INFRA_BAD_RESPONSE,
            message=f"Ticker response has no price for {symbol}",
            details={"symbol": symbol, "body": str(body)[:300]},
        )

    try:
        price = Decimal(str(data["a"]))
    except InvalidOperation as e:
        raise InfraError(
            code=ErrorCode.INFRA_BAD_RESPONSE,
            message=f"Ticker price is not a number: {data['a']!r}",
            details={"symbol": symbol},
        ) from e

    ts_ms = data.get("t")
    timestamp = ts_ms / 1000 if isinstance(ts_ms, (int, float)) else now_timestamp()
    return PriceQuote(symbol=symbol, price=price, timestamp=timestamp)
