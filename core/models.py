# PATH: core/models.py
"""
Core data models for CROSSARB.

ENTITY CONTRACT
===============
- MarketSnapshot, ArbitrageOpportunity, RiskAssessment, SettlementPayload
  are immutable once built.
- ExecutionResult is terminal once status leaves "pending".
- RiskState is an immutable value; every update returns a new instance.
  The loop driver owns the only live instance and threads it through
  each cycle.

All money and prices are Decimal. to_dict() renders them as strings.
===============
"""

from dataclasses import dataclass, field, replace
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from core.constants import (
    AdvisorySource,
    CycleOutcome,
    ErrorCode,
    Recommendation,
    SettlementStatus,
    TradeStatus,
    Venue,
)
from core.time import now_timestamp, utc_day

ZERO = Decimal("0")


@dataclass(frozen=True)
class PriceQuote:
    """Price returned by a price source."""
    symbol: str
    price: Decimal
    timestamp: float


@dataclass(frozen=True)
class GasEstimate:
    """Gas estimate for one operation."""
    gas_units: int
    gas_price: int
    cost_in_quote: Decimal


@dataclass(frozen=True)
class MarketSnapshot:
    """Inputs of one decision cycle."""
    cex_price: Decimal
    dex_price: Decimal
    gas_cost_estimate: Decimal
    captured_at: float = field(default_factory=now_timestamp)
    symbol: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "symbol": self.symbol,
            "cex_price": str(self.cex_price),
            "dex_price": str(self.dex_price),
            "gas_cost_estimate": str(self.gas_cost_estimate),
            "captured_at": self.captured_at,
        }


@dataclass(frozen=True)
class ArbitrageOpportunity:
    """Spread assessment derived from a snapshot."""
    buy_venue: Venue
    sell_venue: Venue
    buy_price: Decimal
    sell_price: Decimal
    spread_percent: Decimal
    position_size: Decimal
    gross_profit: Decimal
    net_profit: Decimal
    confidence: int
    recommendation: Recommendation
    snapshot: Optional[MarketSnapshot] = None

    @property
    def is_profitable(self) -> bool:
        return self.net_profit > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "buy_venue": self.buy_venue.value,
            "sell_venue": self.sell_venue.value,
            "buy_price": str(self.buy_price),
            "sell_price": str(self.sell_price),
            "spread_percent": str(self.spread_percent),
            "position_size": str(self.position_size),
            "gross_profit": str(self.gross_profit),
            "net_profit": str(self.net_profit),
            "confidence": self.confidence,
            "recommendation": self.recommendation.value,
        }


@dataclass(frozen=True)
class AdvisoryContext:
    """Auxiliary context sent along with an opportunity to the advisory service."""
    volatility_percent: Decimal
    historical_win_rate: Decimal
    current_exposure: Decimal
    position_size: Decimal
    gas_cost: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "volatility_percent": str(self.volatility_percent),
            "historical_win_rate": str(self.historical_win_rate),
            "current_exposure": str(self.current_exposure),
            "position_size": str(self.position_size),
            "gas_cost": str(self.gas_cost),
        }


@dataclass(frozen=True)
class AdvisoryDecision:
    """Parsed response of the advisory service."""
    should_execute: bool
    confidence: int
    reasoning: str = ""
    risk_note: str = ""


@dataclass(frozen=True)
class AdvisoryVerdict:
    """Outcome of the advisory gate."""
    approved: bool
    source: AdvisorySource
    confidence: int
    reasoning: str = ""
    risk_note: str = ""
    code: Optional[ErrorCode] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "approved": self.approved,
            "source": self.source.value,
            "confidence": self.confidence,
            "reasoning": self.reasoning,
            "risk_note": self.risk_note,
            "code": self.code.value if self.code else None,
        }


@dataclass(frozen=True)
class FundsSnapshot:
    """Spendable balance of one token, in token units."""
    token: str
    available: Decimal
    source: str
    # None when the source spends its own funds (no approval involved)
    allowance: Optional[Decimal] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token": self.token,
            "available": str(self.available),
            "allowance": str(self.allowance) if self.allowance is not None else None,
            "source": self.source,
        }


@dataclass(frozen=True)
class RiskAssessment:
    """Gating decision for one trade attempt."""
    is_valid: bool
    risk_score: int
    portfolio_exposure_after: Decimal
    daily_loss_remaining: Decimal
    issues: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    circuit_breaker: bool = False
    funds: Optional[FundsSnapshot] = None

    @property
    def reason(self) -> str:
        return "; ".join(self.issues) if self.issues else "All checks passed"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "risk_score": self.risk_score,
            "portfolio_exposure_after": str(self.portfolio_exposure_after),
            "daily_loss_remaining": str(self.daily_loss_remaining),
            "issues": list(self.issues),
            "warnings": list(self.warnings),
            "circuit_breaker": self.circuit_breaker,
            "funds": self.funds.to_dict() if self.funds else None,
        }


@dataclass(frozen=True)
class SettlementPayload:
    """Signed settlement instruction."""
    token: str
    amount: int
    recipient: str
    nonce: str
    payload_hash: str
    signature: str
    signer: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token": self.token,
            "amount": str(self.amount),
            "recipient": self.recipient,
            "nonce": self.nonce,
            "payload_hash": self.payload_hash,
            "signature": self.signature,
            "signer": self.signer,
        }


@dataclass(frozen=True)
class TradeRequest:
    """On-chain leg of an approved opportunity."""
    trade_id: str
    token_in: str
    token_out: str
    amount_in: int
    min_amount_out: int
    path: Tuple[str, ...]
    position_size: Decimal
    expected_profit: Decimal
    buy_venue: Venue
    # Price used to mark the output back into quote currency
    mark_price: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trade_id": self.trade_id,
            "token_in": self.token_in,
            "token_out": self.token_out,
            "amount_in": str(self.amount_in),
            "min_amount_out": str(self.min_amount_out),
            "path": list(self.path),
            "position_size": str(self.position_size),
            "expected_profit": str(self.expected_profit),
            "buy_venue": self.buy_venue.value,
            "mark_price": str(self.mark_price),
        }


@dataclass(frozen=True)
class TradeReceipt:
    """What the chain submitter reports for a trade transaction."""
    tx_ref: str
    status: TradeStatus
    amount_out: int = 0
    gas_used: int = 0
    gas_cost: Decimal = ZERO
    error: Optional[str] = None


@dataclass(frozen=True)
class ExecutionResult:
    """Normalized outcome of one trade attempt."""
    trade_id: str
    status: TradeStatus
    position_size: Decimal
    tx_ref: Optional[str] = None
    profit: Decimal = ZERO
    gas_used: int = 0
    gas_cost: Decimal = ZERO
    efficiency: Decimal = ZERO
    settlement_status: SettlementStatus = SettlementStatus.NOT_ATTEMPTED
    settlement_tx_ref: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[ErrorCode] = None
    # False when nothing reached the chain (request refused or submitter raised)
    submitted: bool = True

    @property
    def is_terminal(self) -> bool:
        return self.status != TradeStatus.PENDING

    @property
    def is_confirmed(self) -> bool:
        return self.status == TradeStatus.CONFIRMED

    @property
    def is_partial_failure(self) -> bool:
        """Trade confirmed but proceeds never reached the recipient."""
        return self.is_confirmed and self.settlement_status == SettlementStatus.FAILED

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trade_id": self.trade_id,
            "status": self.status.value,
            "position_size": str(self.position_size),
            "tx_ref": self.tx_ref,
            "profit": str(self.profit),
            "gas_used": self.gas_used,
            "gas_cost": str(self.gas_cost),
            "efficiency": str(self.efficiency),
            "settlement_status": self.settlement_status.value,
            "settlement_tx_ref": self.settlement_tx_ref,
            "is_partial_failure": self.is_partial_failure,
            "error": self.error,
            "error_code": self.error_code.value if self.error_code else None,
            "submitted": self.submitted,
        }


@dataclass(frozen=True)
class RiskState:
    """Process-wide risk ledger."""
    current_exposure: Decimal = ZERO
    daily_loss: Decimal = ZERO
    total_trades: int = 0
    win_count: int = 0
    total_profit: Decimal = ZERO
    circuit_breaker_active: bool = False
    trading_day: str = field(default_factory=utc_day)

    @property
    def loss_count(self) -> int:
        return self.total_trades - self.win_count

    @property
    def win_rate(self) -> Decimal:
        """Win rate in percent (0 when no trades yet)."""
        if self.total_trades == 0:
            return ZERO
        return Decimal(self.win_count) * Decimal("100") / Decimal(self.total_trades)

    def evolve(self, **changes: Any) -> "RiskState":
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "current_exposure": str(self.current_exposure),
            "daily_loss": str(self.daily_loss),
            "total_trades": self.total_trades,
            "win_count": self.win_count,
            "loss_count": self.loss_count,
            "total_profit": str(self.total_profit),
            "circuit_breaker_active": self.circuit_breaker_active,
            "trading_day": self.trading_day,
        }


@dataclass
class CycleReport:
    """Everything observable about one cycle: one terminal outcome plus reason."""
    cycle: int
    outcome: CycleOutcome
    reason: str
    code: Optional[ErrorCode] = None
    snapshot: Optional[MarketSnapshot] = None
    opportunity: Optional[ArbitrageOpportunity] = None
    advisory: Optional[AdvisoryVerdict] = None
    risk: Optional[RiskAssessment] = None
    settlement: Optional[SettlementPayload] = None
    execution: Optional[ExecutionResult] = None
    started_at: float = field(default_factory=now_timestamp)
    finished_at: Optional[float] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def invalid_data(self) -> bool:
        return self.code in (
            ErrorCode.INVALID_MARKET_DATA,
            ErrorCode.PRICE_BELOW_FLOOR,
            ErrorCode.PRICE_IMPLAUSIBLE,
            ErrorCode.STALE_QUOTE,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "cycle": self.cycle,
            "outcome": self.outcome.value,
            "reason": self.reason,
            "code": self.code.value if self.code else None,
            "snapshot": self.snapshot.to_dict() if self.snapshot else None,
            "opportunity": self.opportunity.to_dict() if self.opportunity else None,
            "advisory": self.advisory.to_dict() if self.advisory else None,
            "risk": self.risk.to_dict() if self.risk else None,
            "settlement": self.settlement.to_dict() if self.settlement else None,
            "execution": self.execution.to_dict() if self.execution else None,
            "started_at": self.started_at,
            "finished_at": self.finished_at,
            "details": self.details,
        }
