# PATH: core/validators.py
"""
Unified validators for CROSSARB.

CONTRACTS:
- check_market_data(): raises InvalidMarketDataError for inputs that
  cannot be evaluated (broken feed), never for unprofitable inputs.
- is_valid_address() / checksum(): EVM address handling via web3.

USAGE:
    from core.validators import check_market_data

    check_market_data(snapshot, min_price=Decimal("0.001"))
"""

import re
from decimal import Decimal
from typing import Iterable, Optional

from web3 import Web3

from core.constants import (
    DEFAULT_MAX_PLAUSIBLE_SPREAD_PERCENT,
    DEFAULT_MAX_QUOTE_AGE_SECONDS,
    DEFAULT_MIN_PRICE,
    ErrorCode,
)
from core.exceptions import InvalidMarketDataError
from core.models import MarketSnapshot
from core.time import age_seconds, is_fresh

_ADDRESS_RE = re.compile(r"0x[0-9a-fA-F]{40}")


def raw_spread_percent(cex_price: Decimal, dex_price: Decimal) -> Decimal:
    """Spread in percent of the cheaper price. Both prices must be positive."""
    buy_price = min(cex_price, dex_price)
    sell_price = max(cex_price, dex_price)
    return (sell_price - buy_price) / buy_price * Decimal("100")


def check_market_data(
    snapshot: MarketSnapshot,
    min_price: Decimal = DEFAULT_MIN_PRICE,
    max_plausible_spread_percent: Decimal = DEFAULT_MAX_PLAUSIBLE_SPREAD_PERCENT,
    max_quote_age_seconds: Optional[float] = DEFAULT_MAX_QUOTE_AGE_SECONDS,
    current_time: Optional[float] = None,
) -> None:
    """
    Validate one cycle's inputs.

    Checks, in order:
    0. Prices and gas are finite (a NaN or Infinity feed value)
    1. Both prices above the sanity floor
    2. Gas estimate is not negative
    3. Snapshot is fresh (skipped when max_quote_age_seconds is None)
    4. Venue prices are within a plausible distance of each other
       (a 0.085 vs 2.00 pair is a unit mismatch, not a 2250% spread)

    Raises:
        InvalidMarketDataError: with the specific ErrorCode and the inputs
    """
    details = snapshot.to_dict()

    for name, value in (
        ("cex_price", snapshot.cex_price),
        ("dex_price", snapshot.dex_price),
        ("gas_cost_estimate", snapshot.gas_cost_estimate),
    ):
        if value is not None and not value.is_finite():
            raise InvalidMarketDataError(
                f"Non-finite {name}: {value}",
                details={**details, "field": name},
            )

    for venue, price in (("cex", snapshot.cex_price), ("dex", snapshot.dex_price)):
        if price is None or price <= min_price:
            raise InvalidMarketDataError(
                f"{venue.upper()} price {price} at or below floor {min_price}",
                code=ErrorCode.PRICE_BELOW_FLOOR,
                details={**details, "venue": venue, "min_price": str(min_price)},
            )

    if snapshot.gas_cost_estimate < 0:
        raise InvalidMarketDataError(
            f"Negative gas cost estimate {snapshot.gas_cost_estimate}",
            details=details,
        )

    if max_quote_age_seconds is not None and not is_fresh(
        snapshot.captured_at, max_quote_age_seconds, current_time
    ):
        age = age_seconds(snapshot.captured_at, current_time)
        raise InvalidMarketDataError(
            f"Snapshot is {age:.1f}s old (max {max_quote_age_seconds}s)",
            code=ErrorCode.STALE_QUOTE,
            details={**details, "age_seconds": age},
        )

    spread = raw_spread_percent(snapshot.cex_price, snapshot.dex_price)
    if spread > max_plausible_spread_percent:
        raise InvalidMarketDataError(
            f"Spread {spread:.2f}% exceeds plausibility cap {max_plausible_spread_percent}%",
            code=ErrorCode.PRICE_IMPLAUSIBLE,
            details={**details, "spread_percent": str(spread)},
        )


def is_valid_address(address: Optional[str]) -> bool:
    """
    True for a 0x-prefixed 20-byte hex address.

    Single-case hex is accepted as unchecksummed. Mixed case must be a
    valid EIP-55 checksum so a mistyped character is caught.
    """
    if not address or not isinstance(address, str):
        return False
    if not _ADDRESS_RE.fullmatch(address):
        return False
    digits = address[2:]
    if digits == digits.lower() or digits == digits.upper():
        return True
    return Web3.is_checksum_address(address)


def checksum(address: str) -> str:
    """Checksum an address. Caller validates first."""
    return Web3.to_checksum_address(address)


def invalid_addresses(addresses: Iterable[Optional[str]]) -> list[str]:
    """Return the entries that are not well-formed addresses."""
    return [str(a) for a in addresses if not is_valid_address(a)]
