"""
chains/interfaces.py - Capability protocols for external collaborators.

The decision pipeline only talks to these protocols. Concrete adapters
live next to this module (providers, quotes, paper, advisory_http); tests
pass fakes.
"""

from decimal import Decimal
from typing import Any, Dict, Mapping, Protocol, Sequence, Union, runtime_checkable

from core.models import FundsSnapshot, GasEstimate, PriceQuote, TradeReceipt


@runtime_checkable
class PriceSource(Protocol):
    """Centralized venue price reader."""

    async def get_price(self, symbol: str) -> PriceQuote:
        ...


@runtime_checkable
class PoolQuoter(Protocol):
    """Decentralized pool quote: raw amount out for a raw amount in."""

    async def get_pool_quote(self, token_in: str, token_out: str, amount_in: int) -> int:
        ...


@runtime_checkable
class GasEstimator(Protocol):
    """Gas price and cost of an operation, priced in quote currency."""

    async def estimate_gas(self, op_units: int) -> GasEstimate:
        ...


@runtime_checkable
class BalanceSource(Protocol):
    """Spendable funds for a token about to be sold, and the allowance granted to spender."""

    async def get_funds(self, token: str, spender: str) -> FundsSnapshot:
        ...


@runtime_checkable
class AdvisoryService(Protocol):
    """Second-opinion service. Returns raw text or an already-parsed mapping."""

    async def evaluate(self, request: Dict[str, Any]) -> Union[str, Mapping[str, Any]]:
        ...


@runtime_checkable
class ChainSubmitter(Protocol):
    """On-chain trade and settlement submission."""

    async def submit_trade(
        self,
        token_in: str,
        amount_in: int,
        path: Sequence[str],
        min_amount_out: int,
        gas_limit: int,
    ) -> TradeReceipt:
        ...

    async def submit_settlement(
        self,
        token: str,
        amount: int,
        recipient: str,
        signature: str,
        nonce: str,
        gas_limit: int,
    ) -> str:
        ...


def to_raw_amount(amount: Decimal, decimals: int) -> int:
    """Human amount -> integer base units (truncating)."""
    return int(amount.scaleb(decimals))


def from_raw_amount(raw: int, decimals: int) -> Decimal:
    """Integer base units -> human amount."""
    return Decimal(raw).scaleb(-decimals)
