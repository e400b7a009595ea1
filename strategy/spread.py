# PATH: strategy/spread.py
"""
Spread analysis for CROSSARB.

SPREAD CONTRACT:
================
buy_price      = min(cex, dex)          (CEX wins ties)
sell_price     = max(cex, dex)
spread_percent = (sell - buy) / buy * 100
gross_profit   = position_size * (sell / buy - 1)
net_profit     = gross_profit - gas_cost_estimate

Recommendation:
  BUY      net_profit > 0 and confidence > buy_confidence_threshold
  MONITOR  net_profit > 0 otherwise
  SKIP     otherwise

Broken inputs raise InvalidMarketDataError before any of the above; they
are never reported as SKIP.

Pure: no I/O, no clock reads beyond the freshness check.
================
"""

from decimal import Decimal
from typing import Optional, Sequence, Tuple

from core.constants import Recommendation, Venue
from core.models import ArbitrageOpportunity, MarketSnapshot
from core.validators import check_market_data, raw_spread_percent
from strategy.config import SpreadConfig


def confidence_for_spread(
    spread_percent: Decimal,
    buckets: Sequence[Tuple[Decimal, int]],
) -> int:
    """
    Step function over (lower bound, confidence) buckets.

    Buckets are sorted by lower bound; the last bucket whose bound is at or
    below the spread wins. A spread below every bound gets 0.
    """
    confidence = 0
    for lower_bound, bucket_confidence in buckets:
        if spread_percent >= lower_bound:
            confidence = bucket_confidence
        else:
            break
    return max(0, min(100, confidence))


def recommend(net_profit: Decimal, confidence: int, buy_threshold: int) -> Recommendation:
    if net_profit > 0 and confidence > buy_threshold:
        return Recommendation.BUY
    if net_profit > 0:
        return Recommendation.MONITOR
    return Recommendation.SKIP


def analyze_spread(
    snapshot: MarketSnapshot,
    position_size: Decimal,
    config: Optional[SpreadConfig] = None,
    current_time: Optional[float] = None,
) -> ArbitrageOpportunity:
    """
    Turn a market snapshot into an opportunity assessment.

    Args:
        snapshot: CEX/DEX prices and gas estimate for this cycle
        position_size: Trade size in quote currency
        config: Thresholds (defaults if None)
        current_time: Override for the freshness check (tests)

    Returns:
        ArbitrageOpportunity

    Raises:
        InvalidMarketDataError: prices at/below floor, implausible, or stale
    """
    config = config or SpreadConfig()

    check_market_data(
        snapshot,
        min_price=config.min_price,
        max_plausible_spread_percent=config.max_plausible_spread_percent,
        max_quote_age_seconds=config.max_quote_age_seconds,
        current_time=current_time,
    )

    if snapshot.cex_price <= snapshot.dex_price:
        buy_venue, sell_venue = Venue.CEX, Venue.DEX
        buy_price, sell_price = snapshot.cex_price, snapshot.dex_price
    else:
        buy_venue, sell_venue = Venue.DEX, Venue.CEX
        buy_price, sell_price = snapshot.dex_price, snapshot.cex_price

    spread_percent = raw_spread_percent(buy_price, sell_price)
    gross_profit = position_size * (sell_price / buy_price - 1)
    net_profit = gross_profit - snapshot.gas_cost_estimate

    confidence = confidence_for_spread(spread_percent, config.confidence_buckets)

    return ArbitrageOpportunity(
        buy_venue=buy_venue,
        sell_venue=sell_venue,
        buy_price=buy_price,
        sell_price=sell_price,
        spread_percent=spread_percent,
        position_size=position_size,
        gross_profit=gross_profit,
        net_profit=net_profit,
        confidence=confidence,
        recommendation=recommend(net_profit, confidence, config.buy_confidence_threshold),
        snapshot=snapshot,
    )


class SpreadAnalyzer:
    """Configured wrapper around analyze_spread()."""

    def __init__(self, config: Optional[SpreadConfig] = None):
        self.config = config or SpreadConfig()

    def analyze(
        self,
        snapshot: MarketSnapshot,
        position_size: Decimal,
        current_time: Optional[float] = None,
    ) -> ArbitrageOpportunity:
        return analyze_spread(snapshot, position_size, self.config, current_time)
